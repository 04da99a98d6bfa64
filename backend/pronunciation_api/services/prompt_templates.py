RULE_CHECKLIST = """IMPORTANT: You MUST check for the following specific pronunciation rules and variations:

1. Tensification (Fortification):
   - When certain consonants appear after a stopped consonant, they become tensed (fortified).
   - Examples: "학교" (hak-gyo) → "학꾜" (hak-kkyo), "입구" (ip-gu) → "입꾸" (ip-kku)
   - CRITICAL: Words like "만나서 반갑습니다" should be pronounced as "만나서 빤갑습니다" due to tensification.

2. Liaison:
   - When a syllable ends with a consonant and the next begins with a vowel, the final consonant is pronounced as the initial of the next syllable.
   - Examples: "꽃이" (kkot-i) → "꼬치" (kko-chi), "밥을" (bap-eul) → "바블" (ba-beul)

3. Nasal Assimilation:
   - When ㄱ (g), ㄷ (d), or ㅂ (b) precede ㄴ (n) or ㅁ (m), they change to ㅇ (ng), ㄴ (n), or ㅁ (m) respectively.
   - Examples: "학년" (hak-nyeon) → "항년" (hang-nyeon), "십만" (sip-man) → "심만" (sim-man)

4. Consonant Assimilation:
   - When certain consonants appear next to each other, one may change to match or become more similar to the other.
   - Examples: "신라" (sin-ra) → "실라" (sil-la), "관리" (gwan-ri) → "괄리" (gwal-li)

5. ㅎ Weakening:
   - When ㅎ appears at the beginning of a word or syllable in casual speech, it may be weakened or dropped entirely.
   - Examples: "하루" (ha-ru) → "아루" (a-ru), "하얀" (ha-yan) → "아얀" (a-yan)"""

OUTPUT_FORMAT = """You MUST return your analysis in valid, parseable JSON format with the following structure:
{{
  "result": "Correct pronunciation" or "Incorrect pronunciation",
  "correct_pronunciation": "[Romanized correct pronunciation, showing how it should be pronounced]",
  "feedback": "[Detailed feedback explaining which pronunciation rule applies and how it should be pronounced. Format: 'written form' → 'correct pronunciation form' (rule name)]"
}}
When the result is "Correct pronunciation", set "correct_pronunciation" and "feedback" to null.

Do not include any text outside of the JSON object."""

OPEN_ANALYSIS_TEMPLATE = """You are a Korean language pronunciation expert. Your task is to analyze the pronunciation of the transcribed text and identify if it follows the correct pronunciation rules in Korean.

Transcribed text: {transcription}

Relevant Korean pronunciation rules:
{relevant_rules}

""" + RULE_CHECKLIST + """

Your analysis MUST follow these steps:

1. Carefully examine the transcribed text for any words that should follow the pronunciation rules above.
2. If the transcription does not reflect the correct pronunciation according to these rules, mark it as "Incorrect pronunciation".
3. For example, if the transcription is "만나서 반갑습니다" it should be marked as incorrect because the correct pronunciation is "만나서 빤갑습니다" due to tensification.

""" + OUTPUT_FORMAT

REFERENCE_COMPARISON_TEMPLATE = """You are a Korean language pronunciation expert. A learner tried to say the expected text below; the transcribed text is what a speech recognizer heard. Decide whether the learner's pronunciation matches how the expected text should be pronounced in Korean.

Expected text: {expected_text}
Transcribed text: {transcription}

Relevant Korean pronunciation rules:
{relevant_rules}

""" + RULE_CHECKLIST + """

Your analysis MUST follow these steps:

1. Compare the transcribed text with the expected text word by word.
2. For every difference, decide which pronunciation rule above the learner failed to apply or over-applied.
3. If the transcription does not reflect the correct pronunciation of the expected text, mark it as "Incorrect pronunciation".

""" + OUTPUT_FORMAT

SPECIAL_NOTE_HEADERS = {
    "tensification": (
        "SPECIAL NOTE: The transcription contains text that MUST follow tensification rules.\n"
        "The correct pronunciation MUST include tensification for these patterns:"
    ),
    "h_liaison": (
        "SPECIAL NOTE: The transcription contains text that MUST follow ㅎ liaison or weakening rules.\n"
        "The correct pronunciation MUST include these sound changes:"
    ),
    "vowel_confusion": (
        "SPECIAL NOTE: The transcription contains text that is commonly mispronounced with vowel confusion.\n"
        "Pay special attention to the correct vowel sounds in these patterns:"
    ),
}

SCHEMA_INSTRUCTIONS = """The output must be a JSON instance that conforms to the JSON schema below.

```
{schema}
```"""
