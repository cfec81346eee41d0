"""
Core — доменные модели, fixed-point математика, ошибки и event log.

Модули не зависят от внешних систем (custody, price feeds): всё, что
здесь лежит, детерминировано и работает только с целыми числами.
"""
