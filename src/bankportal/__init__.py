"""
bankportal — онлайн-банкинг портал: регистрация клиентов, баланс, пополнения,
выводы, P2P-переводы по тегу и канал уведомлений оператора.
"""

__version__ = "3.0.0"
