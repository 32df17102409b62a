"""
linkhub web layer (FastAPI).

create_app() in linkhub_web.app mounts:
- linkhub_web.connection_routes.router
- linkhub_web.webhook_routes.router
- linkhub_web.user_routes.router
"""
