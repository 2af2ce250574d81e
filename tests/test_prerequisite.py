"""Tests for DevHub schema detection."""

import pytest
from conftest import describe_fields

from scratchorg_pool.services import PoolContext, PreRequisiteCheckError, PrerequisiteChecker


class TestCheckForPrerequisites:
    """Tests for the fatal prerequisite check."""

    @pytest.mark.asyncio
    async def test_passes_with_complete_schema(self, devhub, context):
        """Verify a DevHub with all fields passes."""
        checker = PrerequisiteChecker(devhub, context)

        await checker.check_for_prerequisites()

        assert context.is_prerequisite_checked
        assert context.is_prerequisite_met
        assert context.is_new_version_compatible

    @pytest.mark.asyncio
    async def test_describe_runs_once_per_context(self, devhub, context):
        """Verify repeated checks reuse the memoized verdict."""
        checker = PrerequisiteChecker(devhub, context)

        await checker.check_for_prerequisites()
        await checker.check_for_prerequisites()
        await PrerequisiteChecker(devhub, context).check_for_new_version_compatible()

        assert devhub.describe_calls == 1

    @pytest.mark.asyncio
    async def test_new_context_describes_again(self, devhub):
        """Verify memoization is scoped to the context object."""
        await PrerequisiteChecker(devhub, PoolContext()).check_for_prerequisites()
        await PrerequisiteChecker(devhub, PoolContext()).check_for_prerequisites()

        assert devhub.describe_calls == 2

    @pytest.mark.asyncio
    async def test_missing_auth_url_field_fails_with_fields(self, devhub, context):
        """Verify the error carries the describe field list."""
        devhub.describe_result = describe_fields(auth_url=False)

        with pytest.raises(PreRequisiteCheckError) as exc_info:
            await PrerequisiteChecker(devhub, context).check_for_prerequisites()

        assert exc_info.value.fields == devhub.describe_result["fields"]
        assert context.is_new_version_compatible
        assert not context.is_prerequisite_met

    @pytest.mark.parametrize(
        "values,inactive",
        [
            (("In Progress", "Available", "Assigned"), ()),
            (("In Progress", "Available", "Allocate", "Assigned", "Expired"), ()),
            (("In Progress", "Available", "Allocate", "Assigned"), ("Allocate",)),
            (("In Progress", "Available", "Reserved", "Assigned"), ()),
        ],
    )
    @pytest.mark.asyncio
    async def test_picklist_mismatch_fails(self, devhub, context, values, inactive):
        """Verify active picklist values must be exactly the four expected ones."""
        devhub.describe_result = describe_fields(values, inactive=inactive)

        with pytest.raises(PreRequisiteCheckError):
            await PrerequisiteChecker(devhub, context).check_for_prerequisites()

    @pytest.mark.asyncio
    async def test_inactive_extra_value_is_ignored(self, devhub, context):
        """Verify only active picklist values are counted."""
        devhub.describe_result = describe_fields(
            ("In Progress", "Available", "Allocate", "Assigned", "Retired"),
            inactive=("Retired",),
        )

        await PrerequisiteChecker(devhub, context).check_for_prerequisites()

        assert context.is_prerequisite_met

    @pytest.mark.asyncio
    async def test_failure_is_remembered(self, devhub, context):
        """Verify a failing verdict does not trigger another describe."""
        devhub.describe_result = describe_fields(auth_url=False)
        checker = PrerequisiteChecker(devhub, context)

        for _ in range(2):
            with pytest.raises(PreRequisiteCheckError):
                await checker.check_for_prerequisites()

        assert devhub.describe_calls == 1


class TestCompatibilityDetection:
    """Tests for the non-fatal compatibility question."""

    @pytest.mark.asyncio
    async def test_legacy_schema_is_not_an_error(self, devhub, context):
        """Verify legacy DevHubs report incompatibility without raising."""
        devhub.describe_result = {"fields": [{"name": "Id"}, {"name": "Allocation_status__c", "picklistValues": []}]}

        assert await PrerequisiteChecker(devhub, context).check_for_new_version_compatible() is False

    @pytest.mark.asyncio
    async def test_describe_failure_is_fatal_for_the_process(self, devhub, context):
        """Verify a failed detection is re-raised without another describe."""
        devhub.describe_error = ConnectionError("DevHub unreachable")
        checker = PrerequisiteChecker(devhub, context)

        with pytest.raises(ConnectionError):
            await checker.check_for_new_version_compatible()

        devhub.describe_error = None
        with pytest.raises(ConnectionError):
            await checker.check_for_prerequisites()

        assert devhub.describe_calls == 1
        assert not context.is_prerequisite_checked
