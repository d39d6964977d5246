"""Tests for permission overrides."""

from datetime import datetime, timedelta

import pytest

from storeguard.core.rbac.overrides import (
    OverrideEngine,
    OverrideKind,
    PermissionOverride,
    TenantPermissionOverride,
)

GRANT = OverrideKind.GRANT
DENY = OverrideKind.DENY


def override(permission, kind, expires_at=None, **kwargs):
    return PermissionOverride(principal_id="u1", permission=permission, kind=kind, expires_at=expires_at, **kwargs)


class TestPermissionOverride:
    """Test override expiry."""

    def test_without_expiry_is_active(self, now):
        """Test permanent overrides are always active."""
        assert override("capas.view", GRANT).is_active(now)

    def test_future_expiry_is_active(self, now):
        """Test overrides expiring later are active."""
        assert override("capas.view", GRANT, now + timedelta(minutes=1)).is_active(now)

    def test_past_expiry_is_inert(self, now):
        """Test overrides past expiry are inert."""
        assert not override("capas.view", GRANT, now - timedelta(seconds=1)).is_active(now)
        assert not override("capas.view", GRANT, now).is_active(now)

    def test_naive_expiry_treated_as_utc(self, now):
        """Test naive datetimes compare with aware ones."""
        naive = datetime(2024, 6, 1, 13, 0)
        assert override("capas.view", GRANT, naive).is_active(now)


class TestOverrideEngine:
    """Test effective permission resolution."""

    @pytest.fixture
    def engine(self):
        return OverrideEngine({"sales:view", "capas.view", "capas.delete"})

    def test_no_overrides(self, engine, now):
        """Test base permissions pass through."""
        assert engine.resolve({"sales:view"}, [], now) == {"sales:view"}

    def test_grant_adds(self, engine, now):
        """Test grants extend the base set."""
        result = engine.resolve({"sales:view"}, [override("capas.view", GRANT)], now)
        assert result == {"sales:view", "capas.view"}

    def test_deny_removes(self, engine, now):
        """Test denies remove base permissions."""
        result = engine.resolve({"sales:view", "capas.view"}, [override("capas.view", DENY)], now)
        assert result == {"sales:view"}

    def test_deny_wins_over_grant(self, engine, now):
        """Test deny beats grant for the same permission, in any order."""
        overrides = [override("capas.delete", GRANT), override("capas.delete", DENY)]
        assert "capas.delete" not in engine.resolve(set(), overrides, now)
        assert "capas.delete" not in engine.resolve(set(), list(reversed(overrides)), now)

    def test_expired_overrides_ignored(self, engine, now):
        """Test expired grants and denies have no effect."""
        past = now - timedelta(hours=1)
        overrides = [override("capas.delete", GRANT, past), override("sales:view", DENY, past)]
        assert engine.resolve({"sales:view"}, overrides, now) == {"sales:view"}

    def test_unknown_permission_ignored(self, engine, now):
        """Test overrides for unknown permissions are inert."""
        result = engine.resolve({"sales:view"}, [override("capas.fly", GRANT)], now)
        assert result == {"sales:view"}

    def test_tenant_overrides_resolved(self, engine, now):
        """Test store-wide overrides use the same rules."""
        overrides = [
            TenantPermissionOverride(tenant_id=10, permission="capas.view", kind=GRANT),
            TenantPermissionOverride(tenant_id=10, permission="sales:view", kind=DENY),
        ]
        assert engine.resolve({"sales:view"}, overrides, now) == {"capas.view"}

    def test_without_catalog_check(self, now):
        """Test a None catalog accepts every permission."""
        engine = OverrideEngine()
        assert engine.resolve(set(), [override("anything", GRANT)], now) == {"anything"}


class TestExpiringOverrides:
    """Test the expiring-soon report."""

    def test_lists_grants_in_window(self, now):
        """Test active grants expiring within the window are listed, soonest first."""
        engine = OverrideEngine()
        overrides = [
            override("b", GRANT, now + timedelta(days=3), granted_by="admin@loja"),
            override("a", GRANT, now + timedelta(hours=5)),
            override("c", GRANT, now + timedelta(days=10)),
            override("d", GRANT),
            override("e", DENY, now + timedelta(days=1)),
            override("f", GRANT, now - timedelta(days=1)),
        ]
        expiring = engine.find_expiring(overrides, now, timedelta(days=7))

        assert [e.permission for e in expiring] == ["a", "b"]
        assert expiring[0].expires_in_hours == 5
        assert expiring[1].expires_in_hours == 72
        assert expiring[1].granted_by == "admin@loja"
