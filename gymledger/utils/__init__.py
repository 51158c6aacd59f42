# Utils package
from .helpers import utcnow, as_date, as_datetime, day_bounds, to_money, flush, commit
