"""Shared pytest fixtures: sample drafts and a scripted text generator."""
import pytest

from copyrepair.exceptions import GenerationFailure
from copyrepair.generators.base import GenerationOptions, GenerationPrompt
from copyrepair.utils.rulebook import email_rulebook, multiformat_rulebook


VALID_EMAIL = """ТЕМА — 3 варианта
1. Осенняя подборка уже здесь
2. Новые вина сезона
3. Красные к холодам

ПРЕХЕДЕР — 3 варианта
1. Собрали позиции, которые согреют в октябре
2. Сомелье выбрали лучшее из новых поставок
3. Скидка 15% на избранное до конца месяца

ГЛАВНЫЙ БАННЕР:
Заголовок — 3 варианта
1. Сезон густых красных
2. Октябрьская винная карта
3. Тепло в каждом бокале

Подзаголовок — 3 варианта
1. Плотные и пряные вина для долгих вечеров
2. Выбор сомелье на каждый день недели
3. Открывайте новое вместе с нами

ВВОДНЫЙ ТЕКСТ
Осень в винотеках SimpleWine начинается с новых поставок. Мы отобрали позиции, которые хорошо раскрываются с сезонными блюдами.

Кнопка — 3 варианта
1. Выбрать вино
2. Смотреть подборку
3. Открыть каталог
"""

SUBJECT_SECTION = """ТЕМА — 3 варианта
1. Осенняя подборка уже здесь
2. Новые вина сезона
3. Красные к холодам"""

# "Осенняя подборка вин " is 21 characters
LONG_SUBJECT = "Осенняя подборка вин " + "х" * 24

VALID_MULTIFORMAT = """СМС — АНОНС
1. Скидка 10% на коллекцию до воскресенья
2. Хиты сезона со скидкой 10% ждут вас
3. Подборка недели: выгода 10% онлайн
4. Успейте забрать хиты со скидкой 10%
5. Выгода 10% на ассортимент до воскресенья

СТИКИ-БАННЕР С ТАЙМЕРОМ
1. Скидка 10% заканчивается через [таймер]
2. Выгода 10% ещё действует [таймер]
3. До конца акции осталось [таймер]
4. Успейте со скидкой 10% [таймер]
5. Последние часы выгоды [таймер]
"""

BRIEF = """[CAMPAIGN type=email]
Осенняя коллекция: новые поставки, выбор сомелье, скидка 15% на избранное.
[VAR subject=3 preheader=3]
[LIMIT subject<=30]"""


class ScriptedGenerator:
    """Returns queued responses in order; an exception in the queue is raised."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls: list[tuple[GenerationPrompt, GenerationOptions]] = []

    async def generate(self, prompt: GenerationPrompt, options: GenerationOptions) -> str:
        self.calls.append((prompt, options))
        if not self.responses:
            raise GenerationFailure("No scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def email_rules():
    return email_rulebook()


@pytest.fixture
def multiformat_rules():
    return multiformat_rulebook()


@pytest.fixture
def valid_email():
    return VALID_EMAIL


@pytest.fixture
def scripted_generator():
    return ScriptedGenerator
