# module billing_backend.app
from billing_backend.app_setup.factory import create_app

# App globale
app = create_app()
