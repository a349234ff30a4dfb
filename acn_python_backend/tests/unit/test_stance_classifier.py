from acn_python_backend.services.stance_classifier import LexicalStanceClassifier


def test_negated_opening_word_is_refute():
    classifier = LexicalStanceClassifier()

    stance = classifier.classify("raise the minimum wage now", "We should not raise the minimum wage")

    assert stance == "refute"


def test_high_word_overlap_is_support():
    classifier = LexicalStanceClassifier()

    stance = classifier.classify(
        "public transit reduces traffic congestion",
        "Public transit reduces traffic congestion downtown",
    )

    assert stance == "support"


def test_unrelated_text_is_neutral():
    classifier = LexicalStanceClassifier()

    assert classifier.classify("cats are nice pets", "rockets need fuel") == "neutral"


def test_short_words_do_not_count_as_overlap():
    classifier = LexicalStanceClassifier()

    assert classifier.classify("it is a big win", "it is a big win") == "neutral"


def test_overlap_is_measured_against_the_union():
    classifier = LexicalStanceClassifier()

    # 2 shared long words out of 7 distinct words, below the support ratio
    stance = classifier.classify("carbon taxes work", "carbon taxes fail in rural towns")

    assert stance == "neutral"


def test_empty_inputs_are_neutral():
    classifier = LexicalStanceClassifier()

    assert classifier.classify("", "") == "neutral"
    assert classifier.classify("", "anything at all") == "neutral"
