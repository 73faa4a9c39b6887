"""Real-time infrastructure — in-process event bus + WebSocket gateway.

Learn: Events flow through two hops:
1. Services → EventBus.publish (in-process fan-out, one queue per subscriber)
2. Subscription queue → gateway forwarder → WebSocket → client

This decouples event producers (services) from consumers (WebSocket clients).
"""
