"""
Response Templates

Per-language, per-response-type text skeletons with named placeholders.
Lookup falls back from the requested language to the default language, and
from there to a language-agnostic default set.
"""

import re
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from .models import ResponseType

# A template is a small dict of slots: header/result_format/footer for
# results, message/suggestions/examples for everything else.
ResponseTemplate = Dict[str, Any]

_PLACEHOLDER_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


DEFAULT_TEMPLATES: Dict[str, ResponseTemplate] = {
    ResponseType.RESULTS_FOUND.value: {
        "header": 'Found {count} result(s) for "{query}":\n',
        "result_format": "{index}. **{title}**\n   {description}",
        "footer": "\n...and {remaining} more.",
    },
    ResponseType.NO_RESULTS.value: {
        "message": 'No results found for "{query}".',
        "suggestions": ['Type "help" to see what I can do'],
    },
    ResponseType.HELP.value: {
        "message": "**{agent_name}**\n{agent_description}",
        "examples": [],
    },
    ResponseType.ERROR.value: {
        "message": "Something went wrong: {error}",
    },
    ResponseType.FALLBACK.value: {
        "message": (
            'Sorry, {agent_name} could not process "{query}". '
            'Please rephrase your request or type "help".'
        ),
    },
}


BUILTIN_TEMPLATES: Dict[str, Dict[str, ResponseTemplate]] = {
    "en": {
        ResponseType.RESULTS_FOUND.value: {
            "header": '**Found {count} result(s) for "{query}"**\n',
            "result_format": (
                "{index}. **{title}**\n"
                "   {description}\n"
                "   Category: {category} | Level: {level} | Duration: {duration}"
            ),
            "footer": "\n_...and {remaining} more. Narrow your search to see them._",
        },
        ResponseType.NO_RESULTS.value: {
            "message": 'I couldn\'t find anything matching "{query}".',
            "suggestions": [
                "Try a broader category",
                "Check the spelling of your keywords",
                'Type "help" to see what I can do',
            ],
        },
        ResponseType.HELP.value: {
            "message": "**{agent_name}**\n{agent_description}\n\nTry asking:",
            "examples": [
                "Find programming training",
                "Show beginner leadership courses",
                "What security workshops are there for managers?",
            ],
        },
        ResponseType.ERROR.value: {
            "message": "An error occurred while processing your request.\n`{error}`",
        },
        ResponseType.FALLBACK.value: {
            "message": (
                'Sorry, {agent_name} could not process "{query}" right now.'
            ),
            "suggestions": [
                "Rephrase your request",
                'Type "help" to see example questions',
            ],
        },
    },
    "ko": {
        ResponseType.RESULTS_FOUND.value: {
            "header": '**"{query}" 검색 결과 {count}건**\n',
            "result_format": (
                "{index}. **{title}**\n"
                "   {description}\n"
                "   분야: {category} | 수준: {level} | 기간: {duration}"
            ),
            "footer": "\n_외 {remaining}건이 더 있습니다. 검색 조건을 좁혀 보세요._",
        },
        ResponseType.NO_RESULTS.value: {
            "message": '"{query}"에 해당하는 결과를 찾지 못했습니다.',
            "suggestions": [
                "더 넓은 분야로 검색해 보세요",
                "검색어의 철자를 확인해 보세요",
                '"도움말"을 입력하면 사용법을 볼 수 있습니다',
            ],
        },
        ResponseType.HELP.value: {
            "message": "**{agent_name}**\n{agent_description}\n\n이렇게 물어보세요:",
            "examples": [
                "프로그래밍 교육 찾아줘",
                "초급 리더십 과정 보여줘",
            ],
        },
        ResponseType.ERROR.value: {
            "message": "요청을 처리하는 중 오류가 발생했습니다.\n`{error}`",
        },
        ResponseType.FALLBACK.value: {
            "message": '죄송합니다. {agent_name}이(가) "{query}" 요청을 처리하지 못했습니다.',
            "suggestions": [
                "요청을 다르게 표현해 보세요",
                '"도움말"을 입력하면 질문 예시를 볼 수 있습니다',
            ],
        },
    },
    "ja": {
        ResponseType.RESULTS_FOUND.value: {
            "header": "**「{query}」の検索結果: {count}件**\n",
            "result_format": (
                "{index}. **{title}**\n"
                "   {description}\n"
                "   分野: {category} | レベル: {level} | 期間: {duration}"
            ),
            "footer": "\n_ほか{remaining}件あります。条件を絞り込んでください。_",
        },
        ResponseType.NO_RESULTS.value: {
            "message": "「{query}」に一致する結果は見つかりませんでした。",
            "suggestions": [
                "より広い分野で検索してください",
                "キーワードのスペルを確認してください",
                "「ヘルプ」と入力すると使い方を表示します",
            ],
        },
        ResponseType.HELP.value: {
            "message": "**{agent_name}**\n{agent_description}\n\n次のように質問してください:",
            "examples": [
                "プログラミング研修を探して",
                "初級のリーダーシップ講座を見せて",
            ],
        },
        ResponseType.ERROR.value: {
            "message": "リクエストの処理中にエラーが発生しました。\n`{error}`",
        },
        ResponseType.FALLBACK.value: {
            "message": "申し訳ありません。{agent_name}は「{query}」を処理できませんでした。",
            "suggestions": [
                "別の言い方で質問してください",
                "「ヘルプ」と入力すると質問例を表示します",
            ],
        },
    },
}


def _key(response_type: Union[ResponseType, str]) -> str:
    return response_type.value if isinstance(response_type, ResponseType) else str(response_type)


class TemplateSet:
    """
    Caller-supplied collection of response templates.

    Lookup order for (type, language):
    1. the language's own template for that type
    2. if the language is unknown, the default language's template
    3. the language-agnostic default set
    """

    def __init__(
        self,
        languages: Mapping[str, Mapping[str, ResponseTemplate]],
        default_language: str = "en",
        defaults: Optional[Mapping[str, ResponseTemplate]] = None,
    ):
        self._languages = {lang.lower(): dict(templates) for lang, templates in languages.items()}
        self.default_language = default_language.lower()
        self._defaults = dict(DEFAULT_TEMPLATES if defaults is None else defaults)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "TemplateSet":
        """Build from {"default_language": ..., "languages": {...}, "defaults": {...}}"""
        return cls(
            languages=raw.get("languages", {}),
            default_language=raw.get("default_language", "en"),
            defaults=raw.get("defaults"),
        )

    @property
    def languages(self) -> Iterable[str]:
        return list(self._languages)

    def lookup(
        self,
        response_type: Union[ResponseType, str],
        language: Optional[str],
    ) -> Optional[ResponseTemplate]:
        key = _key(response_type)
        lang = (language or self.default_language).lower()

        templates = self._languages.get(lang)
        if templates is None:
            templates = self._languages.get(self.default_language, {})

        if key in templates:
            return templates[key]
        return self._defaults.get(key)


def default_template_set(default_language: str = "en") -> TemplateSet:
    """Built-in English, Korean and Japanese templates."""
    return TemplateSet(BUILTIN_TEMPLATES, default_language=default_language)


def _placeholder_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value if v is not None)
    return str(value)


def fill_placeholders(text: str, values: Mapping[str, Any]) -> str:
    """Substitute {name} placeholders; unknown names render as empty strings.

    Braces that do not form a placeholder are left alone, so item text can
    never break rendering.
    """
    if not text:
        return ""
    return _PLACEHOLDER_RE.sub(lambda m: _placeholder_value(values.get(m.group(1))), text)
