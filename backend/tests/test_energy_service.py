"""
Tests for the energy balance reader.
"""

import pytest

from prospect_intel.services.energy_service import EnergyService


class TestEnergyService:

    @pytest.mark.asyncio
    async def test_reads_current_energy(self, fake_supabase, user_id):
        fake_supabase.seed("user_energy", {"user_id": user_id, "current_energy": 42})
        assert await EnergyService(fake_supabase).get_energy_balance(user_id) == 42

    @pytest.mark.asyncio
    async def test_missing_row_is_zero(self, fake_supabase, user_id):
        assert await EnergyService(fake_supabase).get_energy_balance(user_id) == 0

    @pytest.mark.asyncio
    async def test_read_failure_is_zero(self, fake_supabase, user_id):
        fake_supabase.fail_tables.add("user_energy")
        assert await EnergyService(fake_supabase).get_energy_balance(user_id) == 0
