"""
Provider connection layer.

- OAuth authorization (code flow) with signed, session-bound state
- Secure token storage (encrypted)
- Page / WhatsApp number discovery
- Webhook correlation and notification dispatch
"""
