import asyncio
from contextlib import asynccontextmanager

import pytest
from sqlalchemy import func, select

from services.registration.models.registration import RegistrationRequest
from services.registration.services.admission_service import (
    ADMISSION_LOCK_KEY,
    AdmissionContext,
    AdmissionService,
    check_capacity,
    check_registration_open,
    check_unique_phone,
)
from services.registration.services.settings_service import EventSettingsService
from shared.database.models import Registration
from shared.utils.errors import (
    CapacityReached,
    DuplicatePhone,
    EmptyRequiredField,
    NetworkTimeout,
    RegistrationClosed,
)
from shared.utils.timeouts import with_timeout


def make_form(**overrides) -> RegistrationRequest:
    data = {
        "nombre": "Ana López",
        "telefono": "555-1234",
        "direccion": "Barrio Central",
        "iglesia": "Iglesia Central",
        "pastor": "",
        "confirmado": True,
    }
    data.update(overrides)
    return RegistrationRequest(**data)


async def count_rows(db) -> int:
    result = await db.execute(select(func.count()).select_from(Registration))
    return result.scalar_one()


class UntouchableSession:
    """Cualquier acceso al store falla el test"""

    def __getattr__(self, name):
        raise AssertionError(f"El store no debía usarse: {name}")


async def test_registers_valid_form(db):
    registration = await AdmissionService().register(db, make_form(nombre="  Ana López  "))

    assert registration.id is not None
    assert registration.nombre == "Ana López"
    assert registration.pastor is None
    assert registration.checked_in is False
    assert await count_rows(db) == 1


@pytest.mark.parametrize("field,value", [
    ("nombre", ""),
    ("nombre", "   "),
    ("telefono", ""),
    ("direccion", " "),
    ("confirmado", False),
])
async def test_required_fields_are_checked_before_any_io(field, value):
    locks = []
    service = AdmissionService(lock_factory=locks.append)

    with pytest.raises(EmptyRequiredField) as exc_info:
        await service.register(UntouchableSession(), make_form(**{field: value}))

    assert exc_info.value.field == field
    assert locks == []


async def test_required_field_messages_are_user_facing(db):
    with pytest.raises(EmptyRequiredField) as exc_info:
        await AdmissionService().register(db, make_form(direccion=""))

    assert exc_info.value.message == "La dirección es obligatoria"


async def test_closed_registration_is_rejected(db):
    await EventSettingsService.set_registration_enabled(db, False)

    with pytest.raises(RegistrationClosed):
        await AdmissionService().register(db, make_form())

    assert await count_rows(db) == 0


async def test_missing_setting_means_registration_open(db):
    assert await EventSettingsService.is_registration_enabled(db) is True


async def test_reopened_registration_is_read_fresh(db):
    service = AdmissionService()
    await EventSettingsService.set_registration_enabled(db, False)
    with pytest.raises(RegistrationClosed):
        await service.register(db, make_form())

    await EventSettingsService.set_registration_enabled(db, True)
    registration = await service.register(db, make_form())

    assert registration.id is not None


async def test_capacity_limit_of_1500(db):
    db.add_all([
        Registration(nombre=f"Persona {i}", telefono=f"100-{i:05d}", direccion="Managua", confirmado=True)
        for i in range(1500)
    ])
    await db.commit()

    with pytest.raises(CapacityReached) as exc_info:
        await AdmissionService(max_capacity=1500).register(db, make_form())

    assert "1500" in exc_info.value.message
    assert await count_rows(db) == 1500


async def test_capacity_allows_last_seat(db, registration_factory):
    await registration_factory("111")
    service = AdmissionService(max_capacity=2)

    await service.register(db, make_form(telefono="222"))

    with pytest.raises(CapacityReached):
        await service.register(db, make_form(telefono="333"))


async def test_duplicate_phone_is_rejected(db):
    service = AdmissionService()
    await service.register(db, make_form(telefono="555-9999"))

    with pytest.raises(DuplicatePhone):
        await service.register(db, make_form(nombre="Otra persona", telefono=" 555-9999 "))

    assert await count_rows(db) == 1


async def test_first_failing_rule_wins(db, registration_factory):
    await registration_factory("555-1234")
    await EventSettingsService.set_registration_enabled(db, False)

    with pytest.raises(RegistrationClosed):
        await AdmissionService(max_capacity=1).register(db, make_form(telefono="555-1234"))

    await EventSettingsService.set_registration_enabled(db, True)
    with pytest.raises(CapacityReached):
        await AdmissionService(max_capacity=1).register(db, make_form(telefono="555-1234"))


async def test_rules_run_in_declared_order(db):
    calls = []

    def recorder(name):
        async def rule(session, ctx):
            calls.append(name)
        return rule

    service = AdmissionService(rules=(recorder("open"), recorder("capacity"), recorder("phone")))
    await service.register(db, make_form())

    assert calls == ["open", "capacity", "phone"]


async def test_store_constraint_catches_duplicate_without_rules(db, registration_factory):
    await registration_factory("555-1234")

    with pytest.raises(DuplicatePhone):
        await AdmissionService(rules=()).register(db, make_form(telefono="555-1234"))

    assert await count_rows(db) == 1


async def test_rules_and_insert_run_inside_admission_lock(db):
    events = []

    @asynccontextmanager
    async def lock_factory(key):
        events.append(("acquire", key))
        yield
        events.append(("release", key))

    async def rule(session, ctx):
        events.append(("rule", ctx.form.telefono))

    await AdmissionService(rules=(rule,), lock_factory=lock_factory).register(db, make_form())

    assert events == [
        ("acquire", ADMISSION_LOCK_KEY),
        ("rule", "555-1234"),
        ("release", ADMISSION_LOCK_KEY),
    ]


async def test_store_timeout_rejects_without_writing(db):
    async def slow_rule(session, ctx):
        await with_timeout(asyncio.sleep(1), "slow_rule", timeout=0.01)

    with pytest.raises(NetworkTimeout) as exc_info:
        await AdmissionService(rules=(slow_rule,)).register(db, make_form())

    assert exc_info.value.operation == "slow_rule"
    assert await count_rows(db) == 0


async def test_individual_rules_accept_context(db, registration_factory):
    await registration_factory("555-1234")
    ctx = AdmissionContext(form=make_form(telefono="555-0001"), registration_enabled=True, max_capacity=10)

    await check_registration_open(db, ctx)
    await check_capacity(db, ctx)
    await check_unique_phone(db, ctx)
