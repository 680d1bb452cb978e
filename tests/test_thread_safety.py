"""Tests for thread safety of Container."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Annotated

from iocwire import Container, Inject, LockMode, Value


class SlowService:
    instances = 0

    def on_ready(self) -> None:
        time.sleep(0.01)
        type(self).instances += 1


class Consumer:
    service: Annotated[SlowService, Inject()]


class TestConcurrentResolution:
    def test_concurrent_get_object_builds_once(self) -> None:
        """Concurrent retrieval constructs the object exactly once."""
        SlowService.instances = 0
        container = Container()
        container.register(SlowService)
        container.register(Consumer)
        results: list[SlowService] = []
        errors: list[Exception] = []

        def get_service() -> None:
            try:
                results.append(container.get_object(Consumer).service)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=get_service) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not errors
        assert len(results) == 10
        assert all(r is results[0] for r in results)
        assert SlowService.instances == 1

    def test_concurrent_values_and_lookups(self) -> None:
        """Setting values while other threads resolve does not corrupt the container."""

        class Server:
            port: Annotated[int, Value("port")]

        container = Container()
        container.set_value("port", 1)
        container.register(Server)

        def work(i: int) -> int:
            container.set_value(f"extra.{i}", i)
            return container.get_object(Server).port

        with ThreadPoolExecutor(max_workers=8) as executor:
            futures = [executor.submit(work, i) for i in range(50)]
            ports = [future.result() for future in as_completed(futures)]

        assert ports == [1] * 50
        assert container.get_value("extra.49", int) == 49


class TestConcurrentRegistration:
    def test_concurrent_registration_no_corruption(self) -> None:
        """Concurrent registration doesn't corrupt registry."""
        container = Container()
        errors: list[Exception] = []

        def register_service(i: int) -> None:
            try:

                class DynamicService:
                    index = i

                container.register(DynamicService, name=f"service-{i}")
            except Exception as e:
                errors.append(e)

        with ThreadPoolExecutor(max_workers=10) as executor:
            for i in range(100):
                executor.submit(register_service, i)

        assert not errors
        assert len(container) == 100

    def test_concurrent_duplicate_registration_keeps_one(self) -> None:
        """Only one of many concurrent duplicate registrations succeeds."""
        container = Container()
        errors: list[Exception] = []

        def register() -> None:
            try:
                container.register(SlowService, name="shared")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=register) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(container) == 1
        assert len(errors) == 9


class TestLockMode:
    def test_unlocked_container_resolves(self, unlocked_container: Container) -> None:
        SlowService.instances = 0
        unlocked_container.register(SlowService)
        unlocked_container.register(Consumer)

        consumer = unlocked_container.get_object(Consumer)

        assert consumer.service is unlocked_container.get_object(SlowService)
        assert SlowService.instances == 1

    def test_lock_mode_is_reported(self, unlocked_container: Container) -> None:
        assert "lock_mode=NONE" in repr(unlocked_container)
        assert "lock_mode=THREAD" in repr(Container(lock_mode=LockMode.THREAD))
