"""Synthetic account records for load tests and dry runs."""

from __future__ import annotations

import random

from faker import Faker

from conta_import.models import AccountDetail, AccountRecord, Consent, SourceType


class AccountRecordGenerator:
    """Generate synthetic ITAU/OPF account records.

    Parameters
    ----------
    seed : int | None
        Random seed for reproducibility.
    locale : str
        Faker locale (default ``pt_BR``).
    missing_detail_rate : float
        Share of records generated without a detail payload.
    missing_consent_rate : float
        Share of OPF records generated without a consent payload.
    """

    ID_PREFIX = {SourceType.ITAU: "itau", SourceType.OPF: "opf"}

    def __init__(
        self,
        seed: int | None = None,
        locale: str = "pt_BR",
        missing_detail_rate: float = 0.1,
        missing_consent_rate: float = 0.1,
    ) -> None:
        self.fake = Faker(locale)
        self.random = random.Random(seed)
        self.missing_detail_rate = missing_detail_rate
        self.missing_consent_rate = missing_consent_rate
        if seed is not None:
            self.fake.seed_instance(seed)

    def generate(self, source_type: SourceType, usuario_id: int | None = None) -> AccountRecord:
        """Generate one record for ``source_type``."""
        detalhe = None
        if self.random.random() >= self.missing_detail_rate:
            detalhe = AccountDetail(campo1=self.fake.bban(), campo2=self.fake.company())

        consent = None
        if source_type.has_consents and self.random.random() >= self.missing_consent_rate:
            consent = Consent(payload=f"urn:consent:{self.fake.uuid4()}")

        return AccountRecord(
            conta_id=f"{self.ID_PREFIX[source_type]}-{self.fake.uuid4()}",
            usuario_id=usuario_id if usuario_id is not None else self.random.randint(1, 1_000_000),
            detalhe=detalhe,
            consent=consent,
        )

    def generate_batch(self, count: int, source_type: SourceType) -> list[AccountRecord]:
        """Generate ``count`` records for ``source_type``."""
        return [self.generate(source_type) for _ in range(count)]
