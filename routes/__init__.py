from .health import health_bp
from .pages import pages_bp
from .adoption import adoption_bp
from .booking import booking_bp
from .feedback import feedback_bp
from .content import content_bp
from .admin import admin_bp
from .exports import exports_bp
