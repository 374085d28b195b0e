"""
Автоматизации пользователя.

Каждый модуль пакета, в котором есть функция `register(runtime)`,
подхватывается main.py при старте и регистрирует свои listener'ы.
"""
