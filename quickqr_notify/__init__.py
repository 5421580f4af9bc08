"""QuickQR order notification service.

Persists per-recipient notifications and fans them out to the live websocket
channels of restaurant owners and staff.
"""
