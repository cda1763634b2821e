"""
Services Package

Background services of the quote service:
- RecurringScheduler: timezone-anchored daily jobs
- QuoteBroadcaster: message formatting and publishing
- EventBus: pub/sub sink between the broadcast and its transports
"""
