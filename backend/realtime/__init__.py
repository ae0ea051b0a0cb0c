"""
Realtime app: persisted notifications and WebSocket push.

Key Components:
    - models.py: Notification rows (the notification sink)
    - notifications.py: notify_customer / notify_technician / notify_admin helpers
    - consumers/: WebSocket consumer delivering pushed notifications
    - middleware.py: JWT authentication for WebSocket connections

Usage:
    from realtime.notifications import notify_customer, notify_technician, notify_admin
"""
