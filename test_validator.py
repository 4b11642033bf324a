"""Test the deterministic rule validator."""
import pytest

from copyrepair.models.violation import Severity
from copyrepair.validators.base import ValidationContext
from copyrepair.validators.rule_validator import RuleValidator
from copyrepair.utils.text import grapheme_length, word_ngrams
from conftest import LONG_SUBJECT, VALID_EMAIL, VALID_MULTIFORMAT


def codes(result):
    return [v.code for v in result.violations]


def find(result, code):
    matches = [v for v in result.violations if v.code == code]
    assert matches, f"{code} not in {codes(result)}"
    return matches[0]


# =============================================================================
# EMAIL
# =============================================================================

def test_valid_email_passes(email_rules):
    """Test that a clean draft has no violations at all."""
    result = RuleValidator(email_rules).validate(VALID_EMAIL)

    assert result.is_valid
    assert result.violations == []
    assert result.stats.checked == 10
    assert result.structure["subject"][2] == "Красные к холодам"


def test_shared_trigram_between_subject_and_preheader(email_rules):
    """Test that 'раз два три' in two fields is reported once with both locations."""
    draft = VALID_EMAIL.replace(
        "1. Осенняя подборка уже здесь", "1. Раз два три и всё"
    ).replace(
        "1. Собрали позиции, которые согреют в октябре", "1. Раз два три, скидки недели"
    )
    result = RuleValidator(email_rules).validate(draft)

    violation = find(result, "TRIGRAM_DUPLICATION")
    assert violation.location == "subject <-> preheader"
    assert "раз два три" in violation.evidence
    assert violation.severity == Severity.ERROR
    assert not result.is_valid


def test_literal_trigram_draft(email_rules):
    """Test that the same three words in subject and preheader give exactly one violation."""
    draft = "ТЕМА\n1. Раз два три\nПРЕХЕДЕР\n1. Раз два три"
    result = RuleValidator(email_rules).validate(draft)

    trigrams = [v for v in result.violations if v.code == "TRIGRAM_DUPLICATION"]
    assert len(trigrams) == 1
    assert trigrams[0].location == "subject <-> preheader"
    assert trigrams[0].evidence == "раз два три"


def test_missing_variant_reports_counts(email_rules):
    """Test that two subject variants against three required gives '2 < 3'."""
    draft = VALID_EMAIL.replace("3. Красные к холодам\n", "")
    result = RuleValidator(email_rules).validate(draft)

    violation = find(result, "VARIANT_COUNT_INSUFFICIENT")
    assert violation.location == "subject"
    assert "2 < 3" in violation.message
    assert codes(result) == ["VARIANT_COUNT_INSUFFICIENT"]


def test_subject_over_limit_reports_overage(email_rules):
    """Test that a 45-character subject against a 30 limit is 15 over."""
    assert grapheme_length(LONG_SUBJECT) == 45
    draft = VALID_EMAIL.replace("3. Красные к холодам", f"3. {LONG_SUBJECT}")
    result = RuleValidator(email_rules).validate(draft)

    violation = find(result, "CHAR_LIMIT_EXCEEDED")
    assert violation.location == "subject"
    assert "45 > 30" in violation.message
    assert "(на 15)" in violation.message
    assert violation.evidence == LONG_SUBJECT


# "Осень " is 6 characters
@pytest.mark.parametrize("cluster, expected", [
    ("\U0001F468\u200d\U0001F469\u200d\U0001F467\u200d\U0001F466", 1),  # ZWJ family
    ("\U0001F1F7\U0001F1FA\U0001F1EB\U0001F1F7", 2),  # two flags
    ("e\u0301", 1),
    ("1\ufe0f\u20e3", 1),  # keycap
])
def test_char_limit_counts_graphemes(email_rules, cluster, expected):
    """Test that a multi-codepoint cluster counts as what the reader sees, at and over the limit."""
    text = "Осень " + cluster
    length = 6 + expected
    assert grapheme_length(text) == length
    draft = f"ТЕМА\n1. {text}\n"
    validator = RuleValidator(email_rules)

    at_limit = validator.validate(draft, ValidationContext(char_limits={"subject": length}))
    assert "CHAR_LIMIT_EXCEEDED" not in codes(at_limit)

    over = validator.validate(draft, ValidationContext(char_limits={"subject": length - 1}))
    violation = find(over, "CHAR_LIMIT_EXCEEDED")
    assert violation.location == "subject"
    assert f"{length} > {length - 1} (на 1)" in violation.message


def test_brief_limit_override(email_rules):
    """Test that [LIMIT subject<=20] tightens the subject limit."""
    context = ValidationContext.from_brief("[LIMIT subject<=20]", email_rules)
    result = RuleValidator(email_rules).validate(VALID_EMAIL, context)

    violation = find(result, "CHAR_LIMIT_EXCEEDED")
    assert violation.location == "subject"
    assert "26 > 20" in violation.message


def test_brief_variant_override_uses_aliases(email_rules):
    context = ValidationContext.from_brief("[VAR тема=5 cta=2 unknown=7]", email_rules)

    assert context.required_variants == {"subject": 5, "introCTA": 2}
    result = RuleValidator(email_rules).validate(VALID_EMAIL, context)
    assert "3 < 5" in find(result, "VARIANT_COUNT_INSUFFICIENT").message


@pytest.mark.parametrize("phrase, code", [
    ("Дегустация новых вин", "FORBIDDEN_DEGUSTATSIYA"),
    ("Успейте купить вино", "FORBIDDEN_KUPIT"),
    ("Выгодная покупка", "FORBIDDEN_POKUPKA"),
    ("Яркий букет ягод", "FORBIDDEN_BUKET"),
    ("Долгое послевкусие", "FORBIDDEN_POSLEVKUSIE"),
    ("Крепкие напитки", "FORBIDDEN_NAPITOK"),
    ("Отличный повод", "BANNED_CLICHE"),
    ("Вечер Бордо", "GEOGRAPHY_LABEL_MISUSE"),
    ("Осень 🍷", "EMOJI_FORBIDDEN"),
])
def test_banned_phrases_in_subject(email_rules, phrase, code):
    """Test each ban family on a subject variant."""
    draft = VALID_EMAIL.replace("2. Новые вина сезона", f"2. {phrase}")
    result = RuleValidator(email_rules).validate(draft)

    violation = find(result, code)
    assert violation.location == "subject"
    assert violation.is_error


@pytest.mark.parametrize("phrase", [
    "Мероприятие с дегустацией вин",
    "Купить в винотеке",
    "Покупка в винотеке",
])
def test_allowed_contexts_are_not_flagged(email_rules, phrase):
    """Test that allowed-context exceptions suppress the ban."""
    draft = VALID_EMAIL.replace("1. Выбрать вино", f"1. {phrase}")
    result = RuleValidator(email_rules).validate(draft)

    assert result.is_valid, codes(result)


def test_exact_equality_between_subject_and_banner_title(email_rules):
    draft = VALID_EMAIL.replace("1. Сезон густых красных", "1. Красные к холодам")
    result = RuleValidator(email_rules).validate(draft)

    violation = find(result, "EXACT_EQUALITY")
    assert violation.location == "subject == bannerTitle"


def test_service_phrase_detected(email_rules):
    draft = VALID_EMAIL + "\nПроверка пройдена, все правила соблюдены.\n"
    result = RuleValidator(email_rules).validate(draft)

    violation = find(result, "SERVICE_PHRASE_DETECTED")
    assert violation.location == "document"
    assert codes(result).count("SERVICE_PHRASE_DETECTED") == 1


def test_service_phrase_allow_list(email_rules):
    """Test that the bot handle near a match is not service commentary."""
    draft = VALID_EMAIL.replace(
        "Осень в винотеках SimpleWine", "Пишите @SWChecks_bot. Осень в винотеках SimpleWine"
    )
    result = RuleValidator(email_rules).validate(draft)

    assert "SERVICE_PHRASE_DETECTED" not in codes(result)


def test_unparsable_draft_still_gets_text_checks(email_rules):
    """Test PARSE_FAILED plus the lexical checks on raw text."""
    result = RuleValidator(email_rules).validate("Яркий букет и долгое послевкусие.")

    assert codes(result)[0] == "PARSE_FAILED"
    assert "FORBIDDEN_BUKET" in codes(result)
    assert "FORBIDDEN_POSLEVKUSIE" in codes(result)
    assert result.structure == {}
    assert not result.is_valid


def test_absent_banner_counts_zero_variants(email_rules):
    draft = "ТЕМА\n1. Один\n2. Два\n3. Три\n\nПРЕХЕДЕР\n1. Первый\n2. Второй\n3. Третий\n"
    result = RuleValidator(email_rules).validate(draft)

    locations = {v.location for v in result.violations if v.code == "VARIANT_COUNT_INSUFFICIENT"}
    assert locations == {"bannerTitle", "bannerSubtitle", "introCTA"}


def test_missing_intro_button_is_an_error(email_rules):
    """Test that the intro button is required with three variants."""
    draft = VALID_EMAIL[:VALID_EMAIL.index("Кнопка")]
    result = RuleValidator(email_rules).validate(draft)

    violation = find(result, "VARIANT_COUNT_INSUFFICIENT")
    assert violation.location == "introCTA"
    assert "0 < 3" in violation.message
    assert codes(result) == ["VARIANT_COUNT_INSUFFICIENT"]


def test_long_block_is_a_warning(email_rules):
    draft = VALID_EMAIL + "\nБЛОК 1\nТекст: Первый.\n\nВторой.\n\nТретий.\n"
    result = RuleValidator(email_rules).validate(draft)

    violation = find(result, "BLOCK_TOO_LONG")
    assert violation.location == "block[1]"
    assert violation.severity == Severity.WARNING
    assert result.is_valid


def test_validation_is_deterministic(email_rules):
    """Test that the same draft always yields the same violations in the same order."""
    draft = VALID_EMAIL.replace("2. Новые вина сезона", "2. Букет и послевкусие")
    validator = RuleValidator(email_rules)

    first = validator.validate(draft).to_dict()
    for _ in range(3):
        assert validator.validate(draft).to_dict() == first
    assert RuleValidator(email_rules).validate(draft).to_dict() == first


# =============================================================================
# MULTIFORMAT
# =============================================================================

def test_valid_multiformat_passes(multiformat_rules):
    result = RuleValidator(multiformat_rules).validate(VALID_MULTIFORMAT)

    assert result.is_valid
    assert result.violations == []


def test_sms_alcohol_mention(multiformat_rules):
    draft = VALID_MULTIFORMAT.replace("Хиты сезона", "Вино сезона")
    result = RuleValidator(multiformat_rules).validate(draft)

    assert find(result, "SMS_ALCOHOL_MENTION").location == "sms_announce"


def test_sticky_timer_requires_tag(multiformat_rules):
    draft = VALID_MULTIFORMAT.replace("3. До конца акции осталось [таймер]", "3. До конца акции осталось")
    result = RuleValidator(multiformat_rules).validate(draft)

    violation = find(result, "STICKY_TIMER_MISSING_TAG")
    assert violation.location == "sticky_banner_timer"
    assert violation.evidence == "До конца акции осталось"


def test_inconsistent_discounts_warning(multiformat_rules):
    draft = VALID_MULTIFORMAT.replace("2. Хиты сезона со скидкой 10%", "2. Хиты сезона со скидкой 15%")
    draft = draft.replace("4. Успейте со скидкой 10%", "4. Успейте со скидкой 20%")
    result = RuleValidator(multiformat_rules).validate(draft)

    violation = find(result, "INCONSISTENT_DISCOUNTS")
    assert violation.severity == Severity.WARNING
    assert violation.evidence == "10%, 15%, 20%"
    assert result.is_valid


def test_discount_threshold_from_context(multiformat_rules):
    draft = VALID_MULTIFORMAT.replace("2. Хиты сезона со скидкой 10%", "2. Хиты сезона со скидкой 15%")
    context = ValidationContext(discount_threshold=1)
    result = RuleValidator(multiformat_rules).validate(draft, context)

    assert "INCONSISTENT_DISCOUNTS" in codes(result)


def test_push_title_with_leading_note_is_measured_in_full(multiformat_rules):
    """Test that '(Хит) ' stays part of an inline push title and counts toward its limit."""
    draft = "ПУШ — АНОНС\nЗаголовок: (Хит) Букет скидок на игристое до пятницы"
    result = RuleValidator(multiformat_rules).validate(draft)

    violation = find(result, "CHAR_LIMIT_EXCEEDED")
    assert violation.location == "push_announce.title"
    assert "41 > 32" in violation.message
    assert violation.evidence == "(Хит) Букет скидок на игристое до пятницы"


def test_inline_title_starting_with_count_is_content(multiformat_rules):
    draft = "ПУШ — АНОНС\nЗаголовок: 3 варианта игристого к пятнице"
    result = RuleValidator(multiformat_rules).validate(draft)

    assert result.structure["push_announce"]["title"] == ["3 варианта игристого к пятнице"]
    assert "1 < 5" in find(result, "VARIANT_COUNT_INSUFFICIENT").message


def test_abbreviation_is_document_warning(multiformat_rules):
    draft = VALID_MULTIFORMAT.replace("1. Скидка 10% на коллекцию", "1. Скидка 500 руб. на коллекцию")
    result = RuleValidator(multiformat_rules).validate(draft)

    violation = find(result, "ABBREVIATED_WORD")
    assert violation.location == "document"
    assert violation.severity == Severity.WARNING


def test_multiformat_has_no_ngram_check(multiformat_rules):
    draft = VALID_MULTIFORMAT.replace(
        "5. Последние часы выгоды [таймер]", "5. Скидка 10% на коллекцию [таймер]"
    )
    result = RuleValidator(multiformat_rules).validate(draft)

    assert "TRIGRAM_DUPLICATION" not in codes(result)


def test_word_ngrams_ignore_case_and_punctuation():
    assert word_ngrams("Раз, два — три!") == {"раз два три"}
    assert word_ngrams("раз два") == set()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
