"""
Rulebook - immutable rule tables for draft structure and content checks.

A Rulebook describes WHAT a draft must look like (which fields exist, how
their headers are written, how many variants they need, how long they may
be) and WHICH lexical rules apply. It is built once by a factory
(``email_rulebook()`` / ``multiformat_rulebook()``) and passed by reference
into the extractor, validator and scope resolver. Nothing here is mutated
after construction.

Rule content follows the SimpleWine rulebook (SW_LEXICON_AND_BANS,
SW_GLOBAL_RULES, SPEC_EMAIL_V1, SPEC_MULTIFORMAT_V1).
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from ..models.violation import Severity


class FieldKind(Enum):
    """Shape of a field's value in the structure tree."""
    VARIANTS = "variants"      # list of alternative phrasings
    TEXT = "text"              # one text blob (paragraphs)
    COMPOSITE = "composite"    # nested sub-fields + free text


# Key under which a composite stores text found before any sub-header
FREE_TEXT_KEY = "text"


# =============================================================================
# FIELD DEFINITIONS
# =============================================================================

@dataclass(frozen=True)
class SubFieldSpec:
    """A field nested inside a composite (e.g. banner title)."""
    key: str
    header: str                       # regex, matched on a normalized line
    label: str                        # canonical header used by render()
    id_template: str = "{parent}.{key}"
    kind: FieldKind = FieldKind.VARIANTS
    required_variants: int = 0
    max_chars: Optional[int] = None
    min_chars: Optional[int] = None
    inline: bool = False              # "Заголовок: text" carries a value
    compare_ngrams: bool = True
    description: str = ""

    def field_id(self, parent_id: str) -> str:
        return self.id_template.replace("{parent}", parent_id).replace("{key}", self.key)


@dataclass(frozen=True)
class FieldSpec:
    """A top-level field of a draft."""
    id: str                           # literal id, or template with {n} when repeatable
    header: str
    label: str
    kind: FieldKind = FieldKind.VARIANTS
    required_variants: int = 0
    max_chars: Optional[int] = None
    min_chars: Optional[int] = None
    repeatable: bool = False
    optional: bool = False            # completeness checked only when the header is present
    inline: bool = False
    subfields: tuple[SubFieldSpec, ...] = ()
    compare_ngrams: bool = True
    max_paragraphs: Optional[int] = None
    description: str = ""

    def field_id(self, ordinal: int = 1) -> str:
        return self.id.replace("{n}", str(ordinal)) if self.repeatable else self.id

    def render_label(self, ordinal: int = 1) -> str:
        return self.label.replace("{n}", str(ordinal))

    def subfield(self, key: str) -> Optional[SubFieldSpec]:
        for sub in self.subfields:
            if sub.key == key:
                return sub
        return None


AnyFieldSpec = Union[FieldSpec, SubFieldSpec]


# =============================================================================
# CONTENT RULES
# =============================================================================

@dataclass(frozen=True)
class LexicalBan:
    """
    A forbidden term with optional allowed-context exceptions.

    An occurrence is a violation only when none of ``allowed_context``
    matches the text window around it.
    """
    code: str
    pattern: str
    message: str
    allowed_context: tuple[str, ...] = ()
    window_before: int = 20
    window_after: int = 40
    suggested_fix: Optional[str] = None
    fields: tuple[str, ...] = ()      # field id prefixes; empty = every field


@dataclass(frozen=True)
class PatternBan:
    """A fixed regular expression; any match is a violation."""
    code: str
    pattern: str
    message: str
    severity: Severity = Severity.ERROR
    suggested_fix: Optional[str] = None
    fields: tuple[str, ...] = ()
    document_level: bool = False      # checked once on the raw text


@dataclass(frozen=True)
class RequiredPattern:
    """Every variant of the listed fields must match ``pattern``."""
    code: str
    pattern: str
    message: str
    fields: tuple[str, ...]
    suggested_fix: Optional[str] = None


@dataclass(frozen=True)
class MetaCommentaryRule:
    """Generator leakage (status lines, checklists) with benign exceptions."""
    patterns: tuple[str, ...]
    allow_list: tuple[str, ...] = ()
    window: int = 10
    message: str = "Service phrases or checklists found in the draft"
    suggested_fix: str = "Remove every service phrase, output only the copy"


@dataclass(frozen=True)
class NumericConsistencyRule:
    """Numeric claims of one kind must agree across coordinated formats."""
    pattern: str = r"-?\d{1,2}\s?%"
    max_distinct: int = 2
    label: str = "discount"


@dataclass(frozen=True, eq=False)
class Rulebook:
    """Complete immutable rule configuration for one output format."""
    name: str
    fields: tuple[FieldSpec, ...]
    lexical_bans: tuple[LexicalBan, ...] = ()
    pattern_bans: tuple[PatternBan, ...] = ()
    required_patterns: tuple[RequiredPattern, ...] = ()
    meta_commentary: Optional[MetaCommentaryRule] = None
    exact_equality_pairs: tuple[tuple[str, str], ...] = ()
    ngram_size: int = 3
    numeric_consistency: Optional[NumericConsistencyRule] = None
    directive_aliases: tuple[tuple[str, str], ...] = ()
    description: str = ""
    # (spec, subfield or None, compiled id regex) for every addressable id
    _id_patterns: tuple = field(init=False, repr=False, compare=False, default=())

    def __post_init__(self):
        patterns = []
        for spec in self.fields:
            patterns.append((spec, None, _id_regex(spec.id)))
            for sub in spec.subfields:
                patterns.append((spec, sub, _id_regex(sub.field_id(spec.id))))
        object.__setattr__(self, "_id_patterns", tuple(patterns))

    def field_spec(self, field_id: str) -> Optional[AnyFieldSpec]:
        """Resolve any addressable field id (block[2], bannerTitle...) to its spec."""
        for spec, sub, regex in self._id_patterns:
            if regex.fullmatch(field_id):
                return sub or spec
        return None

    def parent_spec(self, field_id: str) -> Optional[FieldSpec]:
        for spec, sub, regex in self._id_patterns:
            if regex.fullmatch(field_id):
                return spec
        return None

    def is_known_field(self, field_id: str) -> bool:
        return self.field_spec(field_id) is not None

    def resolve_alias(self, name: str) -> Optional[str]:
        lowered = name.strip().lower()
        for alias, field_id in self.directive_aliases:
            if alias == lowered:
                return field_id
        return None


def _id_regex(template: str) -> re.Pattern:
    escaped = re.escape(template).replace(re.escape("{n}"), r"\d+")
    return re.compile(escaped)


# =============================================================================
# SHARED LEXICON (SW_LEXICON_AND_BANS)
# =============================================================================

SW_LEXICAL_BANS: tuple[LexicalBan, ...] = (
    LexicalBan(
        code="FORBIDDEN_DEGUSTATSIYA",
        pattern=r"дегустац",
        message='Слово "дегустация" запрещено, кроме фразы "мероприятие с дегустацией вин"',
        allowed_context=(r"мероприяти[еяи]\s+с\s+дегустаци[ейя]+\s+вин",),
        window_before=30,
        window_after=30,
        suggested_fix='Используйте: "винный вечер", "вечер с винами", "винное мероприятие"',
    ),
    LexicalBan(
        code="FORBIDDEN_KUPIT",
        pattern=r"\bкупи",
        message='Слово "купить" запрещено, кроме "купить в винотеке"',
        allowed_context=(r"в\s+винотек",),
        window_before=20,
        window_after=30,
        suggested_fix='Используйте: "заказать", "выбрать", "собрать корзину"',
    ),
    LexicalBan(
        code="FORBIDDEN_POKUPKA",
        pattern=r"покупк|покупа(?!тел)[тюе]",
        message='Слова "покупка/покупать" запрещены, кроме случаев с "в винотеке"',
        allowed_context=(r"в\s+винотек",),
        window_before=20,
        window_after=40,
        suggested_fix='Переформулируйте без слова "покупка"',
    ),
    LexicalBan(
        code="FORBIDDEN_BUKET",
        pattern=r"\bбукет",
        message='Слово "букет" запрещено',
        suggested_fix='Замените на "профиль" или конкретные ароматы и вкусы',
    ),
    LexicalBan(
        code="FORBIDDEN_POSLEVKUSIE",
        pattern=r"послевкус",
        message='Слово "послевкусие" запрещено',
        suggested_fix='Замените на "финиш"',
    ),
    LexicalBan(
        code="FORBIDDEN_NAPITOK",
        pattern=r"\bнапит(?:ок|ка|ки|ков|кам|ками|ках|ку|ком)\b",
        message='Слово "напиток" и его формы запрещены',
        suggested_fix='Замените на "алкоголь", "категория", "ассортимент", "позиции", "подборка"',
    ),
)

SW_CLICHES: tuple[tuple[str, str], ...] = (
    (r"с\s+характером(?!\s*[—:].{3,})", '"с характером" без конкретного объяснения'),
    (r"для\s+истинных\s+ценителей\s+и\s+особых\s+моментов", 'Штамп: "для истинных ценителей и особых моментов"'),
    (r"отличный\s+повод", 'Штамп: "отличный повод"'),
    (r"никого\s+не\s+оставит\s+равнодушным", 'Штамп: "никого не оставит равнодушным"'),
    (r"икона\s+стиля", 'Штамп: "икона стиля"'),
    (r"лето,?\s+которое\s+хочется\s+пить", 'Штамп: "лето, которое хочется пить"'),
    (r"уютный\s+вечер\s+под\s+пледом", 'Штамп: "уютный вечер под пледом"'),
    (r"для\s+душевных\s+разговоров", 'Штамп: "для душевных разговоров"'),
    (r"со\s+смыслом", 'Штамп: "со смыслом"'),
    (r"больше,?\s+чем\s+просто\s+вино", 'Штамп: "больше, чем просто вино"'),
)

SW_REGIONS: tuple[str, ...] = (
    "Пьемонт", "Тоскан", "Бордо", "Бургунд", "Испан", "Италь", "Франц",
    "Португал", "Чили", "Аргентин", "Австрали", "Новая Зеландия",
)

EMOJI_PATTERN = (
    "[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF"
    "\U0001F700-\U0001F77F\U0001F780-\U0001F7FF\U0001F800-\U0001F8FF"
    "\U0001F900-\U0001F9FF\U0001FA00-\U0001FA6F\U0001FA70-\U0001FAFF"
    "☀-⛿✀-➿]"
)


def _cliche_bans() -> tuple[PatternBan, ...]:
    return tuple(
        PatternBan(
            code="BANNED_CLICHE",
            pattern=pattern,
            message=message,
            suggested_fix="Переформулируйте оригинально",
        )
        for pattern, message in SW_CLICHES
    )


def _geography_bans() -> tuple[PatternBan, ...]:
    """A region may not stand alone as a label without a mention of wine."""
    bans = []
    for region in SW_REGIONS:
        region_re = region.replace(" ", r"\s+")
        forms = (
            rf"(?:пробу[её]м|попробу[её]м|дегуст[ие]\w*)\s+{region_re}",
            rf"вечер\s+{region_re}",
            rf"{region_re}\w*\s+в\s+бокале",
            rf"(?:немного|глоток|вкус|капл[яа])\s+{region_re}",
            rf"{region_re}(?!.{{0,40}}вин)(?!.{{0,10}}(?:ск|н)[иоеа])\s+(?:на\s+столе|для\s+вас|ждет|ждёт)",
        )
        for form in forms:
            bans.append(PatternBan(
                code="GEOGRAPHY_LABEL_MISUSE",
                pattern=form,
                message=f'Регион "{region}" используется как самостоятельный ярлык без упоминания вина',
                suggested_fix=f'Используйте: "вина региона {region}" или прилагательное с "вина"',
            ))
    return tuple(bans)


SW_META_COMMENTARY = MetaCommentaryRule(
    patterns=(
        r"\[?CHECK",
        r"\[?VALID",
        r"PREFLIGHT",
        r"violation",
        r"все\s+правила\s+соблюдены",
        r"проверка\s+пройдена",
    ),
    # Telegram bot name used in real copy
    allow_list=(r"@?SWChecks_bot",),
    window=10,
)

# =============================================================================
# EMAIL FORMAT (SPEC_EMAIL_V1)
# =============================================================================

def email_rulebook() -> Rulebook:
    """Rulebook for a single promotional email."""
    fields = (
        FieldSpec(
            id="subject",
            header=r"(?:тема|subject)(?:\s+(?:письма|lines?))?",
            label="ТЕМА",
            required_variants=3,
            max_chars=30,
            inline=True,
            description="тема письма",
        ),
        FieldSpec(
            id="preheader",
            header=r"(?:прехедер|пре-хедер|preheader|pre-header)",
            label="ПРЕХЕДЕР",
            required_variants=3,
            max_chars=75,
            inline=True,
            description="прехедер",
        ),
        FieldSpec(
            id="banner",
            header=r"(?:главный\s+баннер|main\s+banner|hero\s+banner|баннер|banner|hero)",
            label="ГЛАВНЫЙ БАННЕР",
            kind=FieldKind.COMPOSITE,
            subfields=(
                SubFieldSpec(
                    key="title",
                    header=r"(?:заголовок|title)(?:\s+(?:баннера|banner))?",
                    label="Заголовок —",
                    id_template="bannerTitle",
                    required_variants=3,
                    description="заголовок баннера",
                ),
                SubFieldSpec(
                    key="subtitle",
                    header=r"(?:подзаголовок|subtitle)(?:\s+(?:баннера|banner))?",
                    label="Подзаголовок —",
                    id_template="bannerSubtitle",
                    required_variants=3,
                    max_chars=125,
                    description="подзаголовок баннера",
                ),
            ),
            description="главный баннер",
        ),
        FieldSpec(
            id="intro",
            header=r"(?:вводный\s+текст|лид-абзац|лид|intro(?:duction)?(?:\s+text)?|lead)",
            label="ВВОДНЫЙ ТЕКСТ",
            kind=FieldKind.TEXT,
            description="вводный текст",
        ),
        FieldSpec(
            id="introCTA",
            header=r"(?:кнопка|cta|кта)",
            label="Кнопка:",
            required_variants=3,
            inline=True,
            description="кнопка (CTA)",
        ),
        FieldSpec(
            id="block[{n}]",
            header=r"(?:блок|block)\s*№?\s*\d+",
            label="БЛОК {n}",
            kind=FieldKind.COMPOSITE,
            repeatable=True,
            optional=True,
            compare_ngrams=False,
            max_paragraphs=2,
            subfields=(
                SubFieldSpec(
                    key="title",
                    header=r"(?:заголовок|title)(?:\s+(?:блока|block))?",
                    label="Заголовок —",
                    inline=True,
                    compare_ngrams=False,
                    description="заголовок блока",
                ),
                SubFieldSpec(
                    key="copy",
                    header=r"(?:текст|text|описание|description)(?:\s+(?:блока|block))?",
                    label="Текст:",
                    kind=FieldKind.TEXT,
                    inline=True,
                    compare_ngrams=False,
                    description="текст блока",
                ),
                SubFieldSpec(
                    key="cta",
                    header=r"(?:кнопка|cta|кта)",
                    label="Кнопка:",
                    inline=True,
                    compare_ngrams=False,
                    description="кнопка блока",
                ),
            ),
            description="контентный блок",
        ),
        FieldSpec(
            id="disclaimer",
            header=r"(?:дисклеймер|disclaimer)",
            label="ДИСКЛЕЙМЕР",
            kind=FieldKind.TEXT,
            optional=True,
            compare_ngrams=False,
            description="дисклеймер",
        ),
    )

    emoji_ban = PatternBan(
        code="EMOJI_FORBIDDEN",
        pattern=EMOJI_PATTERN,
        message="Эмодзи запрещены",
        suggested_fix="Удалите все эмодзи",
    )

    return Rulebook(
        name="email",
        fields=fields,
        lexical_bans=SW_LEXICAL_BANS,
        pattern_bans=(emoji_ban,) + _cliche_bans() + _geography_bans(),
        meta_commentary=SW_META_COMMENTARY,
        exact_equality_pairs=(("subject", "bannerTitle"), ("preheader", "bannerSubtitle")),
        directive_aliases=(
            ("subject", "subject"), ("тема", "subject"),
            ("preheader", "preheader"), ("прехедер", "preheader"),
            ("title", "bannerTitle"), ("заголовок", "bannerTitle"),
            ("subtitle", "bannerSubtitle"), ("подзаголовок", "bannerSubtitle"),
            ("cta", "introCTA"), ("кнопка", "introCTA"),
        ),
        description="SPEC_EMAIL_V1",
    )


# =============================================================================
# MULTIFORMAT (SPEC_MULTIFORMAT_V1)
# =============================================================================

SMS_ALCOHOL_TERMS = (
    r"\bвин[оауе]м?\b", r"алкогол", r"игрист", r"\bкрепк", r"шампан",
    r"коньяк", r"виски", r"\bводк", r"текил", r"\bром\b",
    r"\bкрасн", r"\bбел(?:ое|ые|ый|ого|ых)\b", r"просекко", r"\bкава\b",
)


def _title_subtitle(title_max: int, subtitle_max: int, required: int) -> tuple[SubFieldSpec, ...]:
    return (
        SubFieldSpec(
            key="title",
            header=r"(?:заголовок|title)",
            label="Заголовок:",
            required_variants=required,
            max_chars=title_max,
            inline=True,
            description="заголовок",
        ),
        SubFieldSpec(
            key="subtitle",
            header=r"(?:подзаголовок|subtitle)",
            label="Подзаголовок:",
            max_chars=subtitle_max,
            inline=True,
            description="подзаголовок",
        ),
    )


def _dash(left: str, right: str) -> str:
    return rf"{left}\s*[—–\-:]?\s*{right}"


def multiformat_rulebook() -> Rulebook:
    """Rulebook for coordinated push/SMS/web micro-formats built from one brief."""
    push_subs = _title_subtitle(32, 60, 5)
    fields = (
        FieldSpec(id="push_announce", header=_dash(r"(?:пуш|push)", r"(?:анонс|announce)"),
                  label="ПУШ — АНОНС", kind=FieldKind.COMPOSITE, optional=True,
                  subfields=push_subs, description="пуш-анонс"),
        FieldSpec(id="push_reminder", header=_dash(r"(?:пуш|push)", r"(?:напоминание|reminder)"),
                  label="ПУШ — НАПОМИНАНИЕ", kind=FieldKind.COMPOSITE, optional=True,
                  subfields=push_subs, description="пуш-напоминание"),
        FieldSpec(id="push_last_call", header=_dash(r"(?:пуш|push)", r"(?:последний\s+звонок|last\s+call)"),
                  label="ПУШ — ПОСЛЕДНИЙ ЗВОНОК", kind=FieldKind.COMPOSITE, optional=True,
                  subfields=push_subs, description="пуш — последний звонок"),
        FieldSpec(id="sms_announce", header=_dash(r"(?:смс|sms)", r"(?:анонс|announce)"),
                  label="СМС — АНОНС", required_variants=5, max_chars=78, optional=True,
                  description="смс-анонс"),
        FieldSpec(id="sms_reminder", header=_dash(r"(?:смс|sms)", r"(?:напоминание|reminder)"),
                  label="СМС — НАПОМИНАНИЕ", required_variants=5, max_chars=78, optional=True,
                  description="смс-напоминание"),
        FieldSpec(id="sms_last_call", header=_dash(r"(?:смс|sms)", r"(?:последний\s+звонок|last\s+call)"),
                  label="СМС — ПОСЛЕДНИЙ ЗВОНОК", required_variants=5, max_chars=78, optional=True,
                  description="смс — последний звонок"),
        FieldSpec(
            id="yandex_maps",
            header=r"(?:яндекс\s*карты|yandex\s*maps)",
            label="ЯНДЕКС КАРТЫ",
            kind=FieldKind.COMPOSITE,
            optional=True,
            subfields=(
                SubFieldSpec(key="copy", header=r"(?:текст|text)", label="Текст:",
                             kind=FieldKind.TEXT, inline=True, max_chars=300, min_chars=150,
                             description="текст карточки"),
            ),
            description="Яндекс Карты",
        ),
        FieldSpec(id="onboarding", header=r"(?:онбординг|onboarding)", label="ОНБОРДИНГ",
                  kind=FieldKind.COMPOSITE, optional=True,
                  subfields=_title_subtitle(40, 60, 5), description="онбординг"),
        FieldSpec(
            id="landing_page",
            header=r"(?:текст\s+на\s+lp|landing(?:\s+page)?|лендинг)",
            label="ТЕКСТ НА LP",
            kind=FieldKind.COMPOSITE,
            optional=True,
            subfields=(
                SubFieldSpec(key="title", header=r"(?:заголовок|title)", label="Заголовок:",
                             required_variants=2, max_chars=47, inline=True, description="заголовок LP"),
                SubFieldSpec(key="description", header=r"(?:описание|description)", label="Описание:",
                             inline=True, max_chars=428, description="описание LP"),
            ),
            description="текст на лендинге",
        ),
        FieldSpec(
            id="tabs",
            header=r"(?:табы|tabs)",
            label="ТАБЫ",
            kind=FieldKind.COMPOSITE,
            optional=True,
            subfields=(
                SubFieldSpec(key="copy", header=r"(?:текст|text)", label="Текст:",
                             kind=FieldKind.TEXT, inline=True, max_chars=500, min_chars=250,
                             description="текст таба"),
            ),
            description="табы",
        ),
        FieldSpec(id="sticky_banner_timer",
                  header=r"(?:стики-?\s*баннер\s+с\s+таймером|sticky\s+banner\s+with\s+timer)",
                  label="СТИКИ-БАННЕР С ТАЙМЕРОМ", required_variants=5, max_chars=58, optional=True,
                  description="стики-баннер с таймером"),
        FieldSpec(id="sticky_banner",
                  header=r"(?:стики-?\s*баннер(?:\s+без\s+таймера)?|sticky\s+banner(?:\s+without\s+timer)?)",
                  label="СТИКИ-БАННЕР БЕЗ ТАЙМЕРА", required_variants=5, max_chars=50, optional=True,
                  description="стики-баннер"),
        FieldSpec(id="ticker", header=r"(?:бегущая\s+строка|ticker)", label="БЕГУЩАЯ СТРОКА",
                  required_variants=5, max_chars=40, optional=True, description="бегущая строка"),
    )

    sms_ban = LexicalBan(
        code="SMS_ALCOHOL_MENTION",
        pattern="|".join(SMS_ALCOHOL_TERMS),
        message="SMS содержит упоминание алкоголя",
        suggested_fix='Используйте: "коллекция", "ассортимент", "хиты", "подборка", "выгода"',
        fields=("sms_",),
    )
    cta_ban = LexicalBan(
        code="FORBIDDEN_KUPIT",
        pattern=r"\bкупи",
        message='CTA "купить" запрещён (кроме "купить в винотеке")',
        allowed_context=(r"купить?\s+в\s+винотек",),
        window_before=0,
        window_after=30,
        suggested_fix='Используйте: "Заказать", "Выбрать", "Открыть"',
    )
    abbreviations = tuple(
        PatternBan(
            code="ABBREVIATED_WORD",
            pattern=pattern,
            message="Найдено сокращённое слово",
            severity=Severity.WARNING,
            suggested_fix="Запрещено сокращать слова",
            document_level=True,
        )
        for pattern in (
            r"\bт\.к\.", r"\bт\.е\.", r"\bи\s+т\.д\.", r"\bи\s+т\.п\.", r"\bдр\.",
            r"\bг\.", r"\bруб\.", r"\bтыс\.", r"\bмлн\.",
        )
    )
    lexical = tuple(b for b in SW_LEXICAL_BANS if b.code != "FORBIDDEN_KUPIT") + (cta_ban, sms_ban)

    return Rulebook(
        name="multiformat",
        fields=fields,
        lexical_bans=lexical,
        pattern_bans=abbreviations,
        required_patterns=(
            RequiredPattern(
                code="STICKY_TIMER_MISSING_TAG",
                pattern=r"\[(?:таймер|timer)\]",
                message="Стики-баннер с таймером должен заканчиваться на [таймер]",
                fields=("sticky_banner_timer",),
                suggested_fix="Добавьте [таймер] в конец текста",
            ),
        ),
        meta_commentary=SW_META_COMMENTARY,
        numeric_consistency=NumericConsistencyRule(),
        # no cross-format n-gram check
        ngram_size=0,
        description="SPEC_MULTIFORMAT_V1",
    )


def get_rulebook(name: str) -> Rulebook:
    """Build a rulebook by format name."""
    factories = {"email": email_rulebook, "multiformat": multiformat_rulebook}
    if name not in factories:
        raise ValueError(f"Unknown rulebook '{name}', expected one of {sorted(factories)}")
    return factories[name]()
