"""Tests for API endpoint detection."""

from __future__ import annotations

import textwrap
from typing import List, Tuple

import pytest

from codeintel.models import ApiEndpoint, FileAnalysis, FunctionInfo
from codeintel.parsers import JavaScriptParser, PythonParser
from codeintel.patterns import ApiDetector
from codeintel.patterns.api import infer_django_route, normalize_route, route_parameters


def _js(path: str, source: str) -> FileAnalysis:
    return JavaScriptParser().parse(textwrap.dedent(source).lstrip("\n"), path)


def _py(path: str, source: str) -> FileAnalysis:
    return PythonParser().parse(textwrap.dedent(source).lstrip("\n"), path)


def _summary(endpoints: List[ApiEndpoint]) -> List[Tuple[int, str, str, str, str]]:
    return [(e.line, e.method, e.route, e.framework, e.type) for e in endpoints]


EXPRESS_APP = """
const express = require('express');
const app = express();

app.get('/users/:id', (req, res) => {
  res.json({});
});

function getOrders(req, res) {
  res.json([]);
}
"""


def test_express_route_hints_and_handler_naming() -> None:
    analysis = _js("server/app.js", EXPRESS_APP)

    endpoints = ApiDetector().detect({"server/app.js": analysis})

    assert _summary(endpoints) == [
        (4, "GET", "/users/:id", "Express", "express_route"),
        (8, "GET", "/orders", "Express", "express_handler"),
    ]
    assert endpoints[0].container == "<module>"
    assert endpoints[0].metadata == {"source": "route_hint", "parameters": ["id"]}
    assert endpoints[1].metadata["source"] == "naming_convention"


def test_http_client_calls_are_not_routes_without_express() -> None:
    analysis = _js(
        "src/api.js",
        """
        import axios from 'axios';

        export async function getUsers() {
          return axios.get('/api/users');
        }
        """,
    )

    assert ApiDetector().detect({"src/api.js": analysis}) == []


def test_nestjs_controller_prefix_joins_method_routes() -> None:
    analysis = _js(
        "src/users.controller.ts",
        """
        import { Controller, Get, Post } from '@nestjs/common';

        @Controller('users')
        export class UsersController {
          @Get(':id')
          findOne(id) {
            return id;
          }

          @Post()
          create(body) {
            return body;
          }
        }
        """,
    )

    endpoints = ApiDetector().detect({"src/users.controller.ts": analysis})

    assert _summary(endpoints) == [
        (6, "GET", "/users/:id", "NestJS", "nestjs_get"),
        (11, "POST", "/users", "NestJS", "nestjs_post"),
    ]
    assert endpoints[0].container == "UsersController.findOne"


DJANGO_VIEWS = """
from django.http import JsonResponse
from django.views import View
from rest_framework.decorators import api_view
from rest_framework.viewsets import ModelViewSet


def user_detail(request, pk):
    return JsonResponse({})


@api_view(["GET", "POST"])
def order_list(request):
    return JsonResponse({})


class ArticleView(View):
    def get(self, request):
        return JsonResponse({})

    def post(self, request):
        return JsonResponse({})


class CommentViewSet(ModelViewSet):
    def list(self, request):
        return None


class HealthView(View):
    template_name = "health.html"
"""


def test_django_function_class_and_drf_views() -> None:
    analysis = _py("blog/views.py", DJANGO_VIEWS)

    endpoints = ApiDetector().detect({"blog/views.py": analysis})

    assert _summary(endpoints) == [
        (7, "GET", "/user-detail/", "Django", "django_view"),
        (12, "GET", "/order-list/", "Django REST Framework", "django_api_view"),
        (12, "POST", "/order-list/", "Django REST Framework", "django_api_view"),
        (17, "GET", "/article/", "Django", "django_class_view"),
        (20, "POST", "/article/", "Django", "django_class_view"),
        (25, "GET", "/comment-view-set/", "Django REST Framework", "django_rest_framework"),
        (29, "GET", "/health/", "Django", "django_class_view"),
    ]
    assert endpoints[-1].metadata["source"] == "class_default"


def test_http_named_methods_on_plain_classes_are_not_endpoints() -> None:
    analysis = _py(
        "blog/cache.py",
        """
        from django.core.cache import cache


        class Cache:
            def get(self, key):
                return cache.get(key)
        """,
    )

    assert ApiDetector().detect({"blog/cache.py": analysis}) == []


def test_generic_hints_fill_in_for_unknown_frameworks() -> None:
    analysis = FileAnalysis(path="src/routes.js", language="javascript")
    analysis.functions["register(app)"] = FunctionInfo(
        line_number=3,
        api_endpoints=[{"type": "fastify_route", "method": "delete", "url": "/items/{id}", "line": 5}],
    )

    endpoints = ApiDetector().detect({"src/routes.js": analysis})

    assert _summary(endpoints) == [(5, "DELETE", "/items/{id}", "Generic", "fastify_route")]
    assert endpoints[0].metadata["parameters"] == ["id"]


def test_files_with_errors_are_skipped() -> None:
    analysis = _js("server/app.js", EXPRESS_APP)
    analysis.error = "Analysis failed: boom"

    assert ApiDetector().detect({"server/app.js": analysis}) == []


def test_detection_stats_and_report() -> None:
    detector = ApiDetector()
    corpus = {"server/app.js": _js("server/app.js", EXPRESS_APP)}

    report = detector.get_detection_report(corpus)
    stats = report["summary"]

    assert stats["total_endpoints"] == 2
    assert stats["method_distribution"]["GET"] == 2
    assert stats["method_distribution"]["DELETE"] == 0
    assert stats["framework_distribution"] == {"Express": 2}
    assert stats["files_with_endpoints"] == ["server/app.js"]
    assert stats["common_patterns"] == [
        {"pattern": "/orders", "count": 1},
        {"pattern": "/users/:param", "count": 1},
    ]
    assert len(report["findings"]) == 2
    assert report["breakdown"]["files_analyzed"] == 1


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("UserListView", "/user-list/"),
        ("user_detail", "/user-detail/"),
        ("OrderApi", "/order/"),
        ("View", "/"),
    ],
)
def test_infer_django_route(name: str, expected: str) -> None:
    assert infer_django_route(name) == expected


def test_route_normalisation_and_parameters() -> None:
    route = "/users/:id/posts/{post_id}/<int:pk>"

    assert normalize_route(route) == "/users/:param/posts/{param}/<param>"
    assert route_parameters(route) == ["id", "post_id", "pk"]


@pytest.mark.parametrize(
    ("route", "expected"),
    [
        ("/posts/<int:pk>", ["pk"]),
        ("/a/<slug>/<uuid:ref>", ["slug", "ref"]),
        ("/files/*", ["*"]),
        ("/health", []),
    ],
)
def test_route_parameters_report_each_name_once(route: str, expected: List[str]) -> None:
    assert route_parameters(route) == expected


def test_malformed_route_hints_are_ignored_or_defaulted() -> None:
    routes = FunctionInfo(
        line_number=3,
        api_endpoints=[
            "GET /skipped",  # type: ignore[list-item]
            {"type": "express_route", "method": "get", "route": "/x", "line": "n/a"},
            {"type": "express_route", "method": "post", "route": "/y", "line": "7"},
            {"type": "express_route", "method": "put", "route": "/z", "line": None},
        ],
    )
    corpus = {
        "server/routes.js": FileAnalysis(
            path="server/routes.js",
            language="javascript",
            imports={"express": ["express"]},
            functions={"routes()": routes},
        )
    }

    endpoints = ApiDetector().detect(corpus)

    assert [(e.line, e.method, e.route) for e in endpoints] == [
        (3, "GET", "/x"),
        (3, "PUT", "/z"),
        (7, "POST", "/y"),
    ]
