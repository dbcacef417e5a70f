import pytest

from personas.voice_guides import VOICE_GUIDES, VOICE_IDS, build_voice_guide_block, taboo_phrases


def test_block_is_byte_identical_across_calls():
    for voice in VOICE_IDS:
        assert build_voice_guide_block(voice) == build_voice_guide_block(voice)


def test_known_voice_block_layout():
    block = build_voice_guide_block("gamer_nerdy")
    lines = block.splitlines()
    assert lines[0] == "VOICE_GUIDE:"
    assert [line.split(":")[0] for line in lines[1:]] == [
        "- PERSONA",
        "- VOCABULARY",
        "- PACING",
        "- EMOJI_POLICY",
        "- TABOO_PHRASES",
    ]
    assert '"git gud"' in lines[-1]


def test_unknown_or_empty_voice_omits_guidance():
    assert build_voice_guide_block("pirate_captain") is None
    assert build_voice_guide_block("") is None
    assert build_voice_guide_block(None) is None
    assert taboo_phrases("pirate_captain") == ()


def test_table_has_ten_voices_and_is_read_only():
    assert len(VOICE_IDS) == 10
    with pytest.raises(TypeError):
        VOICE_GUIDES["new_voice"] = VOICE_GUIDES["cozy_girl"]
