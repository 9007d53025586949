"""Configuration management using Pydantic Settings"""

from decimal import Decimal
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

from loan_origination.domain.models import PaymentCadence, PlanConfig


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # External Services
    recordkeeper_webhook_url: str = "http://localhost:8002/mock-recordkeeper"

    # Service
    service_name: str = "loan-origination"
    log_level: str = "INFO"

    # HTTP Client
    http_timeout_seconds: float = 5.0
    webhook_max_retries: int = 5
    webhook_backoff_base: float = 1.0  # Exponential backoff base in seconds

    # Plan loan policy (IRS + plan limits)
    plan_max_loan_absolute: Decimal = Decimal("50000")
    plan_max_loan_pct_of_vested: Decimal = Decimal("0.5")
    plan_min_loan_amount: Decimal = Decimal("1000")
    plan_term_years_min: int = 1
    plan_term_years_max: int = 5
    plan_default_annual_rate: Decimal = Decimal("0.085")
    plan_origination_fee_pct: Decimal = Decimal("0.01")
    plan_allowed_payment_cadences: List[PaymentCadence] = [
        PaymentCadence.MONTHLY,
        PaymentCadence.BIWEEKLY,
        PaymentCadence.SEMIMONTHLY,
    ]
    plan_requires_spousal_consent: bool = True

    # Application store
    application_terminal_retention: int = 10000  # Confirmed/ineligible applications kept for lookup

    def plan_config(self) -> PlanConfig:
        """Build the immutable plan policy used for one application"""
        return PlanConfig(
            max_loan_absolute=self.plan_max_loan_absolute,
            max_loan_pct_of_vested=self.plan_max_loan_pct_of_vested,
            min_loan_amount=self.plan_min_loan_amount,
            term_years_min=self.plan_term_years_min,
            term_years_max=self.plan_term_years_max,
            default_annual_rate=self.plan_default_annual_rate,
            origination_fee_pct=self.plan_origination_fee_pct,
            allowed_payment_cadences=frozenset(self.plan_allowed_payment_cadences),
            requires_spousal_consent=self.plan_requires_spousal_consent,
        )


settings = Settings()
