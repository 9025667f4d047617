"""Built-in trigger definitions.

Triggers are the named events that start rule evaluation. They carry no
behavior beyond declaring the parameters an incoming event must supply.
"""

from ruleflow.catalog.base import ParameterSpec, TriggerDefinition

GUEST_CHECKIN = TriggerDefinition(
    id="guest_checkin",
    name="Guest checks in",
    description="Triggered when a guest checks into the property",
    category="guest",
    parameters=(
        ParameterSpec("guestId", required=True, description="ID of the guest"),
        ParameterSpec("roomId", description="Room the guest checked into"),
        ParameterSpec("isVip", type="boolean", description="Whether the guest is a VIP"),
    ),
)

GUEST_CHECKOUT = TriggerDefinition(
    id="guest_checkout",
    name="Guest checks out",
    description="Triggered when a guest checks out of the property",
    category="guest",
    parameters=(
        ParameterSpec("guestId", required=True, description="ID of the guest"),
        ParameterSpec("roomId", description="Room the guest vacated"),
    ),
)

CLEANING_COMPLETED = TriggerDefinition(
    id="cleaning_completed",
    name="Cleaning completed",
    description="Triggered when a cleaning service completes cleaning a property",
    category="property",
    parameters=(
        ParameterSpec("propertyId", required=True, description="ID of the property"),
        ParameterSpec("completedBy", description="Cleaner who finished the job"),
    ),
)

BOOKING_CONFIRMED = TriggerDefinition(
    id="booking_confirmed",
    name="Booking confirmed",
    description="Triggered when a booking is confirmed",
    category="booking",
    parameters=(
        ParameterSpec("bookingId", required=True, description="ID of the booking"),
    ),
)

NEW_MESSAGE = TriggerDefinition(
    id="new_message",
    name="New message received",
    description="Triggered when a new message is received",
    category="communication",
    parameters=(
        ParameterSpec("messageId", required=True, description="ID of the message"),
    ),
)

SCHEDULED_TIME = TriggerDefinition(
    id="scheduled_time",
    name="Scheduled time reached",
    description="Triggered at a specific time",
    category="time",
    parameters=(
        ParameterSpec("time", type="datetime", required=True, description="The scheduled time"),
    ),
)

GUEST_REVIEW_SUBMITTED = TriggerDefinition(
    id="guest_review_submitted",
    name="Guest leaves a review",
    description="Triggered when a guest submits a review",
    category="guest",
    parameters=(
        ParameterSpec("guestId", required=True),
        ParameterSpec("bookingId", required=True),
        ParameterSpec("rating", type="number", required=True, description="Rating from 1 to 5"),
        ParameterSpec("reviewText", type="text"),
    ),
)

DEVICE_ALERT = TriggerDefinition(
    id="device_alert",
    name="Smart device alert",
    description="Triggered when a smart device reports a problem",
    category="maintenance",
    parameters=(
        ParameterSpec("deviceId", required=True),
        ParameterSpec("deviceType", required=True),
        ParameterSpec("alertType", required=True),
        ParameterSpec("roomId"),
        ParameterSpec("batteryLevel", type="number"),
    ),
)

PAYMENT_FAILED = TriggerDefinition(
    id="payment_failed",
    name="Payment failed",
    description="Triggered when a guest payment fails",
    category="billing",
    parameters=(
        ParameterSpec("bookingId", required=True),
        ParameterSpec("guestId", required=True),
        ParameterSpec("amount", type="number", required=True),
        ParameterSpec("currency", required=True),
        ParameterSpec("failureReason"),
    ),
)

MAINTENANCE_REQUEST = TriggerDefinition(
    id="maintenance_request",
    name="Maintenance request created",
    description="Triggered when a maintenance request is filed",
    category="maintenance",
    parameters=(
        ParameterSpec("requestId", required=True),
        ParameterSpec("roomId", required=True),
        ParameterSpec("requestType", required=True),
        ParameterSpec("priority", required=True),
        ParameterSpec("description", type="text", required=True),
        ParameterSpec("reportedBy"),
    ),
)

# Registry of built-in triggers
TRIGGERS: dict[str, TriggerDefinition] = {
    trigger.id: trigger
    for trigger in (
        GUEST_CHECKIN,
        GUEST_CHECKOUT,
        CLEANING_COMPLETED,
        BOOKING_CONFIRMED,
        NEW_MESSAGE,
        SCHEDULED_TIME,
        GUEST_REVIEW_SUBMITTED,
        DEVICE_ALERT,
        PAYMENT_FAILED,
        MAINTENANCE_REQUEST,
    )
}
