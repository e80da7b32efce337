from __future__ import annotations

from typing import TYPE_CHECKING

from kfutil.domain.model import TrustStore
from kfutil.domain.rot import TrustStoreCriteria, eligible, evaluate_eligibility
from tests.support.fake_gateway import leaf_entry, make_certificate, root_entry

if TYPE_CHECKING:
    from kfutil.domain.model import InventoryEntry
    from kfutil.domain.rot import EligibilityReport

DEFAULTS = TrustStoreCriteria()


def _check(
    entries: list[InventoryEntry],
    *,
    min_certs: int = 1,
    max_leaves: int = 5,
    max_keys: int = 5,
) -> EligibilityReport:
    return evaluate_eligibility(
        TrustStore(store_id="s1"),
        entries,
        min_certs=min_certs,
        max_leaves=max_leaves,
        max_keys=max_keys,
    )


def test_store_of_roots_is_eligible() -> None:
    report = _check([root_entry(make_certificate("a", 1)), root_entry(make_certificate("b", 2))])

    assert report.eligible
    assert report.cert_count == 2
    assert report.leaf_count == 0


def test_too_many_leaves_rejects_store() -> None:
    entries = [root_entry(make_certificate("a", 1))]
    entries += [leaf_entry(f"leaf-{index}") for index in range(DEFAULTS.max_leaves + 1)]

    report = _check(entries)

    assert not report.eligible
    assert report.leaf_count == DEFAULTS.max_leaves + 1
    assert "leaf" in (report.reason or "")


def test_private_keys_reject_store() -> None:
    entries = [leaf_entry("k1", private_key=True), leaf_entry("k2", private_key=True)]

    report = _check(entries, max_keys=1)

    assert not report.eligible
    assert report.key_count == 2
    assert "private keys" in (report.reason or "")


def test_too_few_certificates_rejects_store() -> None:
    report = _check([], min_certs=1)

    assert not report.eligible
    assert "fewer than the minimum" in (report.reason or "")


def test_minus_one_disables_each_threshold() -> None:
    entries = [leaf_entry(f"leaf-{index}", private_key=True) for index in range(10)]

    assert eligible(
        TrustStore(store_id="s1"),
        entries,
        min_certs=-1,
        max_leaves=-1,
        max_keys=-1,
    )
    assert _check([], min_certs=-1).eligible
