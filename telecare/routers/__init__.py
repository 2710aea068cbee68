# telecare/routers/__init__.py
from . import appointments
from . import auth
from . import availability
from . import consultations
from . import health
from . import payments

__all__ = ["appointments", "auth", "availability", "consultations", "health", "payments"]
