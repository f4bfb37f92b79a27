from trustfund.schemas.common import CamelModel


class StatsResponse(CamelModel):
    """Platform-wide rollups"""
    total_raised: int
    campaigns_funded: int
    lives_impacted: int
    total_campaigns: int
