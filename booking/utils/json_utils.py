import json
from datetime import date, datetime, time
from decimal import Decimal

class BookingJSONEncoder(json.JSONEncoder):
    """
    JSON encoder for audit details
    Handles money values and the date/time columns of booking records
    """
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, time):
            return obj.strftime('%H:%M')
        return super(BookingJSONEncoder, self).default(obj)
