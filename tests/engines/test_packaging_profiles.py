"""
Millstone — Packaging Profiles
================================
Profile invariants, item checks and catalog lookup by output and
pack mode.
"""

from decimal import Decimal

import pytest

from core.errors import UnknownReference, ValidationError
from core.primitives.packaging import PackagingComponent, PackagingProfile
from engines.inventory.catalog import PackagingProfileCatalog
from engines.inventory.seed import build_seed_catalogs, build_seed_profiles

D = Decimal


def _profile(profile_id="pp-chili", pack_mode="pouch_50g", output="fg-chili-50", components=None, **kwargs):
    if components is None:
        components = (PackagingComponent("pack-pouch-50", D("1")),)
    return PackagingProfile(
        profile_id=profile_id,
        name="Chili 50g Pouch",
        pack_mode=pack_mode,
        output_item_id=output,
        components=components,
        **kwargs,
    )


# ══════════════════════════════════════════════════════════════
# PROFILE
# ══════════════════════════════════════════════════════════════

class TestPackagingProfile:
    def test_pack_mode_is_upper_cased(self):
        assert _profile().pack_mode == "POUCH_50G"

    def test_requires_pack_mode(self):
        with pytest.raises(ValidationError, match="pack_mode"):
            _profile(pack_mode="  ")

    def test_requires_components(self):
        with pytest.raises(ValidationError, match="at least one component"):
            _profile(components=())

    def test_rejects_non_positive_qty(self):
        with pytest.raises(ValidationError, match="positive qty_per_unit"):
            _profile(components=(PackagingComponent("pack-pouch-50", D("0")),))

    def test_rejects_duplicate_component(self):
        with pytest.raises(ValidationError, match="more than once"):
            _profile(components=(
                PackagingComponent("pack-pouch-50", D("1")),
                PackagingComponent("pack-pouch-50", D("2")),
            ))

    def test_check_items(self):
        items, _ = build_seed_catalogs()
        _profile().check_items(items.as_mapping())
        with pytest.raises(ValidationError, match="FINISHED_GOOD"):
            _profile(output="bulk-chili").check_items(items.as_mapping())
        with pytest.raises(ValidationError, match="PACKING"):
            _profile(components=(PackagingComponent("raw-chili", D("1")),)).check_items(
                items.as_mapping()
            )

    def test_dict_round_trip(self):
        profile = _profile(components=(
            PackagingComponent("pack-pouch-50", D("1")),
            PackagingComponent("pack-box", D("0.05")),
        ))
        assert PackagingProfile.from_dict(profile.to_dict()) == profile


# ══════════════════════════════════════════════════════════════
# CATALOG
# ══════════════════════════════════════════════════════════════

class TestPackagingProfileCatalog:
    def test_seed_profiles(self):
        items, _ = build_seed_catalogs()
        profiles = build_seed_profiles(items)
        assert len(profiles) == 3
        assert "pp-garam-pouch" in profiles
        assert [p.profile_id for p in profiles.all(pack_mode="pouch_100g")] == [
            "pp-garam-pouch", "pp-turmeric-pouch",
        ]

    def test_single_profile_found_without_mode(self):
        items, _ = build_seed_catalogs()
        profiles = build_seed_profiles(items)
        assert profiles.for_output("fg-garam-100").profile_id == "pp-garam-pouch"
        assert profiles.for_output("fg-chili-50") is None

    def test_several_profiles_need_a_mode(self):
        items, _ = build_seed_catalogs()
        profiles = build_seed_profiles(items)
        with pytest.raises(ValidationError, match=r"\['BOXED_20', 'POUCH_100G'\]"):
            profiles.for_output("fg-turmeric-100")
        assert profiles.for_output("fg-turmeric-100", "Boxed_20").profile_id == "pp-turmeric-boxed"

    def test_unknown_mode(self):
        items, _ = build_seed_catalogs()
        profiles = build_seed_profiles(items)
        with pytest.raises(UnknownReference, match="fg-garam-100/BOXED_20"):
            profiles.for_output("fg-garam-100", "boxed_20")

    def test_rejects_duplicate_id(self):
        items, _ = build_seed_catalogs()
        profiles = PackagingProfileCatalog(items, [_profile()])
        with pytest.raises(ValidationError, match="already registered"):
            profiles.register(_profile(pack_mode="pouch_bulk"))

    def test_one_active_profile_per_mode(self):
        items, _ = build_seed_catalogs()
        profiles = PackagingProfileCatalog(items, [_profile()])
        with pytest.raises(ValidationError, match="already has an active POUCH_50G"):
            profiles.register(_profile(profile_id="pp-chili-2"))
        profiles.register(_profile(profile_id="pp-chili-old", is_active=False))
        assert len(profiles.all(active_only=True)) == 1
        assert profiles.for_output("fg-chili-50").profile_id == "pp-chili"

    def test_register_checks_items(self):
        items, _ = build_seed_catalogs()
        with pytest.raises(ValidationError, match="PACKING"):
            PackagingProfileCatalog(items, [
                _profile(components=(PackagingComponent("bulk-chili", D("0.05")),)),
            ])

    def test_get_unknown(self):
        items, _ = build_seed_catalogs()
        with pytest.raises(UnknownReference, match="packaging profile"):
            PackagingProfileCatalog(items).get("pp-none")
