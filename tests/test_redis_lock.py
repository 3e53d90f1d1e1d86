import pytest
import redis
from sqlalchemy import func, select

from app.core.config import settings
from services.registration.models.registration import RegistrationRequest
from services.registration.services.admission_service import (
    ADMISSION_LOCK_KEY,
    AdmissionService,
    default_lock_factory,
)
from shared.cache import redis_client
from shared.cache.redis_client import DistributedLock
from shared.database.models import Registration
from shared.utils.errors import NetworkTimeout


class FakeRedis:
    """Subconjunto de redis.asyncio usado por DistributedLock"""

    def __init__(self, fail_set=False, fail_eval=False):
        self.store = {}
        self.expires = {}
        self.fail_set = fail_set
        self.fail_eval = fail_eval

    async def set(self, key, value, nx=False, ex=None):
        if self.fail_set:
            raise redis.ConnectionError("redis caído")
        if nx and key in self.store:
            return None
        self.store[key] = value
        self.expires[key] = ex
        return True

    async def eval(self, script, numkeys, key, identifier):
        if self.fail_eval:
            raise redis.ConnectionError("redis caído")
        if self.store.get(key) == identifier:
            del self.store[key]
            return 1
        return 0


@pytest.fixture
def fake_redis(monkeypatch):
    fake = FakeRedis()

    async def get_fake_redis():
        return fake

    monkeypatch.setattr(redis_client, "get_redis", get_fake_redis)
    return fake


def make_form(**overrides) -> RegistrationRequest:
    data = {"nombre": "Ana López", "telefono": "555-1234", "direccion": "Barrio Central", "confirmado": True}
    data.update(overrides)
    return RegistrationRequest(**data)


async def count_rows(db) -> int:
    result = await db.execute(select(func.count()).select_from(Registration))
    return result.scalar_one()


async def test_lock_is_held_inside_block_and_released_after(fake_redis):
    async with DistributedLock("admision", timeout=1, expire=30):
        assert "lock:admision" in fake_redis.store
        assert fake_redis.expires["lock:admision"] == 30

    assert "lock:admision" not in fake_redis.store


async def test_lock_held_elsewhere_times_out(fake_redis):
    fake_redis.store["lock:admision"] = "otra-sesion"

    with pytest.raises(NetworkTimeout):
        async with DistributedLock("admision", timeout=0.2, expire=30):
            pytest.fail("no debía entrar al bloque")

    assert fake_redis.store["lock:admision"] == "otra-sesion"


async def test_redis_error_on_acquire_is_network_timeout(fake_redis):
    fake_redis.fail_set = True

    with pytest.raises(NetworkTimeout):
        async with DistributedLock("admision", timeout=1, expire=30):
            pytest.fail("no debía entrar al bloque")


async def test_release_only_removes_own_key(fake_redis):
    lock = DistributedLock("admision", timeout=1, expire=30)
    await lock.acquire()

    # La clave expiró y otra sesión tomó el lock
    fake_redis.store["lock:admision"] = "otra-sesion"
    await lock.release()

    assert fake_redis.store["lock:admision"] == "otra-sesion"


async def test_redis_error_on_release_does_not_fail_block(fake_redis):
    fake_redis.fail_eval = True
    lock = DistributedLock("admision", timeout=1, expire=30)

    async with lock:
        pass

    assert lock.identifier is None


async def test_committed_registration_survives_failed_lock_release(db, fake_redis):
    fake_redis.fail_eval = True
    service = AdmissionService(lock_factory=lambda key: DistributedLock(key, timeout=1, expire=30))

    registration = await service.register(db, make_form())

    assert registration.id is not None
    assert await count_rows(db) == 1


async def test_admission_rejected_while_lock_is_taken(db, fake_redis):
    fake_redis.store[f"lock:{ADMISSION_LOCK_KEY}"] = "otra-sesion"
    service = AdmissionService(lock_factory=lambda key: DistributedLock(key, timeout=0.2, expire=30))

    with pytest.raises(NetworkTimeout):
        await service.register(db, make_form())

    assert await count_rows(db) == 0


def test_admission_lock_outlives_store_calls(monkeypatch):
    monkeypatch.setattr(settings, "ADMISSION_LOCK_ENABLED", True)
    monkeypatch.setattr(settings, "STORE_TIMEOUT_SECONDS", 10.0)

    lock = default_lock_factory(ADMISSION_LOCK_KEY)

    # lectura de configuración, conteo, teléfono, commit y refresh
    assert lock.expire > 5 * settings.STORE_TIMEOUT_SECONDS
    assert lock.key == f"lock:{ADMISSION_LOCK_KEY}"


def test_admission_lock_can_be_disabled(monkeypatch):
    monkeypatch.setattr(settings, "ADMISSION_LOCK_ENABLED", False)

    assert not isinstance(default_lock_factory(ADMISSION_LOCK_KEY), DistributedLock)
