# adlaunch/models/ad_account.py
"""
Ad account configuration per user and platform family.
Holds the identifiers campaigns are created under.
"""
from sqlalchemy import Column, String, Boolean, Index
from adlaunch.models.base import BaseModel


READY_FOR_CAMPAIGNS = "READY_FOR_CAMPAIGNS"


class AdAccount(BaseModel):
    """
    A connected ad account. ``platform`` is the account family:
    META (Facebook + Instagram) or GOOGLE.
    """
    __tablename__ = "ad_accounts"

    user_id = Column(String(100), nullable=False, index=True)
    platform = Column(String(20), nullable=False)

    external_account_id = Column(String(100), nullable=False)  # act_123 / Google customer ID
    name = Column(String(255), nullable=True)
    currency = Column(String(10), nullable=True)

    pixel_or_conversion_id = Column(String(100), nullable=True)  # Meta pixel / Google conversion action
    page_or_publisher_ref = Column(String(100), nullable=True)  # Facebook Page ID
    instagram_actor_id = Column(String(100), nullable=True)

    integration_status = Column(String(40), nullable=False, default="PENDING")
    is_primary = Column(Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<AdAccount {self.platform} {self.external_account_id} user={self.user_id}>"


# Composite index for the primary-account lookup
Index('idx_ad_account_user_platform', AdAccount.user_id, AdAccount.platform, AdAccount.is_primary)
