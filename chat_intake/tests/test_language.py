from chat_intake.intake.language import detect_language, score


def test_english_function_words_pick_secondary_locale():
    assert detect_language("what is the") == "en"


def test_german_function_words_pick_primary_locale():
    assert detect_language("ich bin der") == "de"


def test_tie_defaults_to_secondary_locale():
    assert detect_language("") == "en"
    assert detect_language("Currywurst 12345") == "en"
    assert detect_language("ich the") == "en"


def test_whole_word_matching_only():
    # "this" 不应命中 "is"，"dich" 不应命中 "ich"
    assert score("this dich") == {"de": 0, "en": 0}


def test_case_and_umlauts():
    assert detect_language("Was sind die ÖFFNUNGSZEITEN?") == "de"
    assert detect_language("When is the restaurant open?") == "en"
