"""
Prayer slot reminders and WhatsApp broadcasts.

Public API:
    init_scheduler() / shutdown_scheduler() - Start and stop the reminder poller
    run_tick(now) - One pass over all active slots
    process_slot(slot, preference, now) - Evaluate and deliver a single reminder
    process_slot_start(slot, preference, now) - Notice sent when a slot begins
    send_whatsapp_message(address, body) - Send one WhatsApp text

Broadcasts:
    start_broadcast(message) - Queue a broadcast to all active subscribers
    get_broadcast_status(job_id) - Counts and status of a broadcast
    cancel_broadcast(job_id) - Stop a broadcast between sends

Custom reminders:
    create_custom_reminder(phone_number, message, scheduled_for) - Schedule a one-off reminder
    process_custom_reminders(now) - Send every due custom reminder
"""

from .broadcast import (
    BroadcastFinishedError,
    BroadcastNotFoundError,
    broadcast_daily_devotional,
    cancel_broadcast,
    get_broadcast_status,
    start_broadcast,
)
from .channels.whatsapp import DeliveryResult, send_whatsapp_message
from .content import get_daily_content, summarize_for_broadcast
from .custom_reminders import (
    create_custom_reminder,
    get_custom_reminder,
    process_custom_reminders,
)
from .evaluator import EvaluationAction, EvaluationResult, process_slot, process_slot_start
from .scheduler import (
    get_scheduler_status,
    init_scheduler,
    run_tick,
    shutdown_scheduler,
)

__all__ = [
    # Poller
    "init_scheduler",
    "shutdown_scheduler",
    "run_tick",
    "get_scheduler_status",
    "process_slot",
    "process_slot_start",
    "EvaluationAction",
    "EvaluationResult",
    # Delivery
    "send_whatsapp_message",
    "DeliveryResult",
    "get_daily_content",
    "summarize_for_broadcast",
    # Broadcasts
    "start_broadcast",
    "get_broadcast_status",
    "cancel_broadcast",
    "broadcast_daily_devotional",
    "BroadcastNotFoundError",
    "BroadcastFinishedError",
    # Custom reminders
    "create_custom_reminder",
    "get_custom_reminder",
    "process_custom_reminders",
]
