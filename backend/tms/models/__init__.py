from .tenancy import Organization, OrganizationSetting
from .fleet import VehicleType, Vehicle, Driver
from .routing import DriverExpense, Route, RouteDriverExpense
from .reports import DriverReport
from .orders import Order, OrderStatus, OrderTrip, OrderTripStatus, TripDriverExpense, BillOfLadingImage
from .communications import NotificationOutbox

__all__ = [
    'Organization', 'OrganizationSetting',
    'VehicleType', 'Vehicle', 'Driver',
    'DriverExpense', 'Route', 'RouteDriverExpense',
    'DriverReport',
    'Order', 'OrderStatus', 'OrderTrip', 'OrderTripStatus', 'TripDriverExpense', 'BillOfLadingImage',
    'NotificationOutbox',
]
