# seatshare/__init__.py
"""
seatshare: места в совместных поездках.
Учёт свободных мест, жизненный цикл бронирований, позиция поездки
и живые обновления через поток изменений.
"""

__version__ = "1.0.0"
