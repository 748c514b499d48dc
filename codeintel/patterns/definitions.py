"""Framework signatures used by the framework detector."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple


class PatternKind(str, Enum):
    """What part of a FileAnalysis a pattern is matched against."""

    FILE_NAME = "file_name"
    IMPORT = "import"
    FUNCTION_CALL = "function_call"
    CLASS_NAME = "class_name"
    DECORATOR = "decorator"
    CONTENT = "content"


@dataclass(frozen=True)
class PatternDefinition:
    id: str
    description: str
    weight: int
    kind: PatternKind
    pattern: re.Pattern
    languages: Optional[Tuple[str, ...]] = None
    context: Optional[str] = None


@dataclass(frozen=True)
class FrameworkSignature:
    name: str
    min_confidence: float
    primary_languages: Tuple[str, ...]
    patterns: Tuple[PatternDefinition, ...]


_JS = ("javascript", "typescript")
_TS_FIRST = ("typescript", "javascript")
_PY = ("python",)
_DART = ("dart",)


def _p(
    id: str,
    description: str,
    weight: int,
    kind: PatternKind,
    regex: str,
    languages: Optional[Tuple[str, ...]] = None,
    context: Optional[str] = None,
) -> PatternDefinition:
    return PatternDefinition(id, description, weight, kind, re.compile(regex), languages, context)


REACT = FrameworkSignature(
    name="React",
    min_confidence=0.3,
    primary_languages=_JS,
    patterns=(
        _p("react_import", "React library import", 8, PatternKind.IMPORT, r"^react$", _JS),
        _p("react_dom_import", "ReactDOM import", 7, PatternKind.IMPORT, r"^react-dom$", _JS),
        _p("jsx_component", "JSX component function", 9, PatternKind.FUNCTION_CALL, r"^[A-Z][a-zA-Z0-9]*$", _JS, "has_jsx"),
        _p("use_state_hook", "useState React hook", 8, PatternKind.FUNCTION_CALL, r"useState", _JS),
        _p("use_effect_hook", "useEffect React hook", 7, PatternKind.FUNCTION_CALL, r"useEffect", _JS),
        _p("jsx_extension", "JSX/TSX file extension", 6, PatternKind.FILE_NAME, r"\.(jsx|tsx)$", _JS),
        _p("jsx_syntax", "JSX tags", 7, PatternKind.CONTENT, r"<[A-Z][a-zA-Z0-9]*[^>]*>", _JS),
        _p("react_component_class", "React class component", 8, PatternKind.CLASS_NAME, r"Component$", _JS, "extends_react"),
    ),
)

REACT_NATIVE = FrameworkSignature(
    name="React Native",
    min_confidence=0.25,
    primary_languages=_JS,
    patterns=(
        _p("react_native_import", "React Native import", 9, PatternKind.IMPORT, r"^react-native$", _JS),
        _p("react_native_community_import", "React Native community packages", 7, PatternKind.IMPORT, r"^@react-native-community/", _JS),
        _p("react_native_async_storage", "AsyncStorage package", 6, PatternKind.IMPORT, r"^@react-native-async-storage/async-storage$", _JS),
        _p("react_navigation_import", "React Navigation import", 7, PatternKind.IMPORT, r"^@react-navigation/", _JS),
        _p("expo_import", "Expo import", 8, PatternKind.IMPORT, r"^expo$", _JS),
        _p("react_native_view_component", "View component", 8, PatternKind.FUNCTION_CALL, r"View", _JS, "has_react_native_import"),
        _p("react_native_text_component", "Text component", 7, PatternKind.FUNCTION_CALL, r"Text", _JS, "has_react_native_import"),
        _p("react_native_scrollview", "ScrollView component", 6, PatternKind.FUNCTION_CALL, r"ScrollView", _JS, "has_react_native_import"),
        _p("react_native_touchable", "Touchable components", 6, PatternKind.FUNCTION_CALL, r"Touchable(Opacity|Highlight|WithoutFeedback)", _JS, "has_react_native_import"),
        _p("react_native_flatlist", "FlatList component", 6, PatternKind.FUNCTION_CALL, r"FlatList", _JS, "has_react_native_import"),
        _p("react_native_platform_api", "Platform API", 7, PatternKind.FUNCTION_CALL, r"Platform\.(OS|select)", _JS),
        _p("react_native_dimensions_api", "Dimensions API", 6, PatternKind.FUNCTION_CALL, r"Dimensions\.get", _JS),
        _p("react_native_stylesheet", "StyleSheet API", 8, PatternKind.FUNCTION_CALL, r"StyleSheet\.(create|compose)", _JS),
        _p("react_native_alert_api", "Alert API", 5, PatternKind.FUNCTION_CALL, r"Alert\.(alert|prompt)", _JS),
        _p("react_native_animated_api", "Animated API", 6, PatternKind.FUNCTION_CALL, r"Animated\.(Value|timing|spring)", _JS),
        _p("app_json_config", "app.json configuration", 7, PatternKind.FILE_NAME, r"app\.json$"),
        _p("metro_config", "Metro bundler config", 6, PatternKind.FILE_NAME, r"metro\.config\.js$"),
        _p("react_native_config_js", "react-native.config.js", 5, PatternKind.FILE_NAME, r"react-native\.config\.js$"),
        _p("expo_app_config", "Expo app config", 7, PatternKind.FILE_NAME, r"app\.(json|config\.(js|ts))$", None, "has_expo_dependency"),
        _p("native_module_android", "Android native module", 4, PatternKind.FILE_NAME, r"android/.*\.(java|kt)$"),
        _p("native_module_ios", "iOS native module", 4, PatternKind.FILE_NAME, r"ios/.*\.(m|h|swift)$"),
    ),
)

DJANGO = FrameworkSignature(
    name="Django",
    min_confidence=0.4,
    primary_languages=_PY,
    patterns=(
        _p("django_import", "Django import", 9, PatternKind.IMPORT, r"^django", _PY),
        _p("django_models_import", "Django models import", 8, PatternKind.IMPORT, r"^django\.db\.models$", _PY),
        _p("django_views_import", "Django views import", 7, PatternKind.IMPORT, r"^django\.views", _PY),
        _p("models_py_file", "models.py module", 8, PatternKind.FILE_NAME, r"models\.py$", _PY),
        _p("views_py_file", "views.py module", 7, PatternKind.FILE_NAME, r"views\.py$", _PY),
        _p("urls_py_file", "urls.py module", 7, PatternKind.FILE_NAME, r"urls\.py$", _PY),
        _p("django_model_class", "Django model class", 8, PatternKind.CLASS_NAME, r"Model$", _PY, "django_models"),
        _p("django_admin_register", "admin.register usage", 6, PatternKind.FUNCTION_CALL, r"admin\.register", _PY),
        _p("django_settings", "settings.py module", 7, PatternKind.FILE_NAME, r"settings\.py$", _PY),
        _p("django_manage_py", "manage.py script", 9, PatternKind.FILE_NAME, r"^manage\.py$", _PY),
    ),
)

NESTJS = FrameworkSignature(
    name="NestJS",
    min_confidence=0.4,
    primary_languages=_TS_FIRST,
    patterns=(
        _p("nestjs_import", "NestJS package import", 9, PatternKind.IMPORT, r"^@nestjs/", _TS_FIRST),
        _p("controller_decorator", "Controller decorator", 8, PatternKind.DECORATOR, r"Controller", _TS_FIRST),
        _p("injectable_decorator", "Injectable decorator", 7, PatternKind.DECORATOR, r"Injectable", _TS_FIRST),
        _p("module_decorator", "Module decorator", 8, PatternKind.DECORATOR, r"Module", _TS_FIRST),
        _p("get_decorator", "Get route decorator", 7, PatternKind.DECORATOR, r"Get", _TS_FIRST),
        _p("post_decorator", "Post route decorator", 7, PatternKind.DECORATOR, r"Post", _TS_FIRST),
        _p("nest_factory", "NestFactory bootstrap", 8, PatternKind.FUNCTION_CALL, r"NestFactory\.create", _TS_FIRST),
        _p("nestjs_main_file", "main.ts entry point", 6, PatternKind.FILE_NAME, r"main\.ts$", ("typescript",)),
    ),
)

FLUTTER = FrameworkSignature(
    name="Flutter",
    min_confidence=0.4,
    primary_languages=_DART,
    patterns=(
        _p("flutter_import", "Flutter package import", 9, PatternKind.IMPORT, r"^package:flutter/", _DART),
        _p("material_import", "Material library import", 7, PatternKind.IMPORT, r"^package:flutter/material\.dart$", _DART),
        _p("cupertino_import", "Cupertino library import", 6, PatternKind.IMPORT, r"^package:flutter/cupertino\.dart$", _DART),
        _p("stateless_widget", "StatelessWidget subclass", 8, PatternKind.CLASS_NAME, r"StatelessWidget$", _DART, "extends"),
        _p("stateful_widget", "StatefulWidget subclass", 8, PatternKind.CLASS_NAME, r"StatefulWidget$", _DART, "extends"),
        _p("widget_build_method", "Widget build method", 7, PatternKind.FUNCTION_CALL, r"build.*Widget", _DART),
        _p("flutter_pubspec", "pubspec.yaml", 8, PatternKind.FILE_NAME, r"pubspec\.yaml$", None, "has_flutter_dependency"),
        _p("flutter_main_dart", "main.dart entry point", 6, PatternKind.FILE_NAME, r"main\.dart$", _DART),
    ),
)

EXPRESS = FrameworkSignature(
    name="Express",
    min_confidence=0.3,
    primary_languages=_JS,
    patterns=(
        _p("express_import", "Express import", 9, PatternKind.IMPORT, r"^express$", _JS),
        _p("express_app_creation", "express() app creation", 8, PatternKind.FUNCTION_CALL, r"express\(\)", _JS),
        _p("express_get_route", "GET route registration", 7, PatternKind.FUNCTION_CALL, r"\.get\(", _JS),
        _p("express_post_route", "POST route registration", 7, PatternKind.FUNCTION_CALL, r"\.post\(", _JS),
        _p("express_listen", "Server listen call", 8, PatternKind.FUNCTION_CALL, r"\.listen\(", _JS),
        _p("express_router", "Express router import", 6, PatternKind.IMPORT, r"^express$", _JS, "router_import"),
        _p("express_middleware", "Middleware registration", 5, PatternKind.FUNCTION_CALL, r"\.use\(", _JS),
    ),
)

ALL_FRAMEWORK_SIGNATURES: Tuple[FrameworkSignature, ...] = (
    REACT,
    REACT_NATIVE,
    DJANGO,
    NESTJS,
    FLUTTER,
    EXPRESS,
)


def get_framework_signature(name: str) -> Optional[FrameworkSignature]:
    lowered = name.lower()
    for signature in ALL_FRAMEWORK_SIGNATURES:
        if signature.name.lower() == lowered:
            return signature
    return None


def get_supported_frameworks() -> List[str]:
    return [signature.name for signature in ALL_FRAMEWORK_SIGNATURES]


__all__ = [
    "ALL_FRAMEWORK_SIGNATURES",
    "FrameworkSignature",
    "PatternDefinition",
    "PatternKind",
    "get_framework_signature",
    "get_supported_frameworks",
]
