# Overview: Request decorators for vendor-scoped API routes.

from functools import wraps
from flask import jsonify, g

from .services import vendor_service
from .services.vendor_service import VendorNotFound


def require_vendor(f):
    """
    Load the vendor named by the `vendor_id` URL segment.

    Sets the following Flask g attributes:
    - g.vendor: The active Vendor row
    - g.vendor_settings: The resolved VendorSettings snapshot

    Returns 404 if the vendor does not exist or is inactive.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        vendor_id = kwargs.get("vendor_id")
        try:
            vendor = vendor_service.get_vendor(vendor_id)
        except VendorNotFound as e:
            return jsonify({"error": str(e)}), 404

        g.vendor = vendor
        g.vendor_settings = vendor_service.resolve_settings(vendor)

        return f(*args, **kwargs)

    return decorated_function
