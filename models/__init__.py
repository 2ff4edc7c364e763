from .db import db
from .customer import Customer
from .promo_code import PromoCode
from .slot import Slot
from .booking import Booking
from .activity_log import ActivityLog
from .inquiry import Inquiry
from .feedback import Feedback
from .site_content import SiteContent
from .newsletter import Newsletter
