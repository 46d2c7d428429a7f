# tasknotify/core/dispatch/__init__.py
"""
Dispatch Layer: outbound task notifications.

This package holds the transport-free parts of the notifier:
- ``events``     : NotificationEvent variants (one per notification kind)
- ``domain``     : Recipient, HealthState, DeliveryArtifact, outcomes, results
- ``addressing`` : address normalization for the WhatsApp channel
- ``templates``  : MessageTemplater (pure, one renderer per event kind)
- ``ports``      : protocols for the health probe, channels and artifact log
- ``dispatcher`` : NotificationDispatcher (per-batch orchestration)

Network adapters live in ``tasknotify.infra``; nothing here performs I/O
except through the injected ports.
"""
