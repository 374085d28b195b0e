"""
Точка входа в Core Runtime.

Загружает конфигурацию из окружения, регистрирует автоматизации
из пакета automations/ и работает до SIGTERM/SIGINT.
"""

import asyncio
import importlib
import pkgutil
import signal
from pathlib import Path

from core.config import Config
from core.runtime import CoreRuntime


def load_automations(runtime: CoreRuntime) -> list[str]:
    """
    Зарегистрировать listener'ы всех модулей automations/ с функцией register(runtime).

    Ошибка конфигурации listener'а (ListenerConfigError) прерывает старт.
    """
    loaded = []
    automations_dir = Path(__file__).parent / "automations"
    if not automations_dir.is_dir():
        return loaded
    for _finder, mod_name, _ispkg in pkgutil.iter_modules([str(automations_dir)]):
        module = importlib.import_module(f"automations.{mod_name}")
        register = getattr(module, "register", None)
        if callable(register):
            register(runtime)
            loaded.append(mod_name)
    return loaded


async def main():
    """Главная функция запуска Core Runtime."""
    config = Config.from_env()
    runtime = CoreRuntime(config)

    loaded = load_automations(runtime)
    print(f"[Runtime] Автоматизации загружены: {loaded}")

    loop = asyncio.get_running_loop()

    def signal_handler():
        print("\n[Runtime] Получен сигнал остановки...")
        loop.create_task(runtime.stop())

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    try:
        print("[Runtime] Запуск Core Runtime...")
        await runtime.start()
        print("[Runtime] Core Runtime запущен")
        await runtime.run_until_stopped()
    finally:
        print("[Runtime] Остановка Core Runtime...")
        try:
            await asyncio.wait_for(runtime.shutdown(), timeout=config.shutdown_timeout)
            print("[Runtime] Core Runtime остановлен")
        except asyncio.TimeoutError:
            print("[Runtime] Таймаут при остановке Runtime")


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
