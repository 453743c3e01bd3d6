# Overview: Flask extension instances for database and migrations.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()

# Keys under app.extensions for per-app collaborators
STATE_REGISTRY_KEY = "multishop.state_registry"
PRINCIPAL_LISTENERS_KEY = "multishop.principal_listeners"
