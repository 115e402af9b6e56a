from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional


class SubscriptionRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    plan: str = "free"
    start_date: Optional[str] = None
    is_trial_user: bool = False
    trial_start_date: Optional[str] = None
    trial_end_date: Optional[str] = None
    has_used_trial: bool = False
    has_payment_method: bool = False
    subscription_id: Optional[str] = None
    card_last4: Optional[str] = None
    card_type: Optional[str] = None
    card_expiry: Optional[str] = None
    cardholder_name: Optional[str] = None
