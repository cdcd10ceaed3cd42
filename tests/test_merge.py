"""
Tests for ingest/merge.py — linkage, dedup, capability flags and stats.
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from ingest.entities import Audit, Company, Evaluation, Mail, NormalizedData, Person
from ingest.merge import (
    Linkage,
    build_linkage,
    calculate_stats,
    dedupe,
    derive_all_flags,
    derive_flags,
    merge_date_data,
)
from ingest.reader import read_date_dir


def _merged(first_date_dir):
    return merge_date_data(read_date_dir(first_date_dir).data)


class TestDedupe:
    def test_first_seen_wins(self):
        items = [("a", 1), ("b", 2), ("a", 3)]
        assert dedupe(items, lambda t: t[0]) == [("a", 1), ("b", 2)]

    def test_none_key_never_deduplicated(self):
        people = [Person(first_name="X"), Person(first_name="Y")]
        assert len(dedupe(people, lambda p: p.key)) == 2

    def test_company_key_falls_back_to_org_number(self):
        data = NormalizedData(companies=[
            Company(org_number="5591234567", name="First"),
            Company(org_number="5591234567", name="Second"),
            Company(folder_id="K1", org_number="5591234567", name="Third"),
        ])
        merged = merge_date_data(data)
        assert [c.name for c in merged.companies] == ["First", "Third"]

    def test_mail_and_audit_keys(self):
        data = NormalizedData(
            mails=[Mail(folder_id="K1", email="a@x.se", subject="Hej"),
                   Mail(folder_id="K1", email="a@x.se", subject="Hej"),
                   Mail(folder_id="K1", email="a@x.se", subject="Igen")],
            audits=[Audit(folder_id="K1", url="https://x.se", audit_date="2026-01-01"),
                    Audit(folder_id="K1", url="https://x.se", audit_date="2026-01-01")],
        )
        merged = merge_date_data(data)
        assert len(merged.mails) == 2
        assert len(merged.audits) == 1

    def test_input_not_modified(self):
        data = NormalizedData(companies=[Company(folder_id="K1"), Company(folder_id="K1")])
        merge_date_data(data)
        assert len(data.companies) == 2


class TestLinkage:
    def test_people_get_folder_via_registration_id(self, first_date_dir):
        merged = _merged(first_date_dir)
        folders = {p.first_name: p.folder_id for p in merged.people}
        assert folders == {"Anna": "K1-2026", "Erik": "K1-2026", "Maria": "K2-2026"}

    def test_folder_via_org_number(self):
        data = NormalizedData(
            companies=[Company(folder_id="K1", org_number="5591234567")],
            evaluations=[Evaluation(registration_id="", company_name="Acme",
                                    verdict="Ja", folder_id="")],
            people=[Person(org_number="5591234567", personal_id="1")],
        )
        merged = merge_date_data(data)
        assert merged.people[0].folder_id == "K1"

    def test_evaluation_copied_onto_company(self, first_date_dir):
        bravo = next(c for c in _merged(first_date_dir).companies if c.folder_id == "K2-2026")
        assert bravo.worth_site == "Ja"
        assert bravo.confidence == "0,8"

    def test_company_value_kept_over_evaluation(self):
        data = NormalizedData(
            companies=[Company(folder_id="K1", worth_site="Nej")],
            evaluations=[Evaluation(folder_id="K1", verdict="Ja")],
        )
        assert merge_date_data(data).companies[0].worth_site == "Nej"

    def test_build_linkage_accepts_dicts(self):
        link = build_linkage(
            [{"folder_id": "K1", "email": "a@x.se", "preview_url": None}],
            [{"folder_id": "K2"}],
            [{"folder_id": "K3", "verdict": "JA", "preview_url": "https://p"}],
        )
        assert link.mail == {"K1"}
        assert link.email == {"K1"}
        assert link.audit == {"K2"}
        assert link.worthy == {"K3"}
        assert link.preview == {"K3"}


class TestFlags:
    def test_fixture_flags(self, first_date_dir):
        merged = _merged(first_date_dir)
        flags = {c.folder_id: f.to_dict()
                 for c, f in zip(merged.companies, derive_all_flags(merged))}
        assert flags["K1-2026"] == {
            "has_mail": False, "has_audit": True, "has_preview": False,
            "worthy_site": True, "has_email": True, "has_domain": True,
        }
        assert flags["K2-2026"] == {
            "has_mail": True, "has_audit": False, "has_preview": True,
            "worthy_site": True, "has_email": True, "has_domain": False,
        }
        assert not any(flags["K3-2026"].values())

    def test_worthy_only_for_ja(self):
        link = Linkage()
        assert derive_flags(Company(folder_id="K1", worth_site=" ja "), link).worthy_site
        assert not derive_flags(Company(folder_id="K1", worth_site="yes"), link).worthy_site

    def test_no_folder_means_no_linkage(self):
        link = Linkage(mail={""}, audit={""})
        flags = derive_flags(Company(org_number="5590000000"), link)
        assert not flags.has_mail
        assert not flags.has_audit

    def test_domain_from_verified_or_guess(self):
        assert derive_flags(Company(domain_verified="acme.se"), Linkage()).has_domain
        assert derive_flags({"domain_guess": "acme.se"}, Linkage()).has_domain


class TestStats:
    def test_fixture_stats(self, first_date_dir):
        stats = calculate_stats(_merged(first_date_dir))
        assert stats["total_companies"] == 3
        assert stats["total_people"] == 3
        assert stats["companies_with_mail"] == 1
        assert stats["companies_with_audit"] == 1
        assert stats["companies_with_preview"] == 1
        assert stats["companies_worthy_site"] == 2
        assert stats["companies_with_email"] == 2
        assert stats["companies_with_domain"] == 1
        assert stats["companies_with_phone"] == 1
        assert stats["board_members"] == 2
        assert stats["deputies"] == 1
        assert stats["unique_cities"] == 3
        assert stats["segments"] == {"Bygg": 1, "Konsult": 1, "Okänt": 1}
        assert stats["regions"] == {"Stockholm": 2, "Skåne": 1}
        assert stats["domain_statuses"] == {"verified": 1, "unknown": 1, "wrong_company": 1}

    def test_empty(self):
        stats = calculate_stats(NormalizedData())
        assert stats["total_companies"] == 0
        assert stats["segments"] == {}
