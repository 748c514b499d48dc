"""Tests for the stdlib-ast Python parser."""

from __future__ import annotations

import textwrap

import pytest

from codeintel.errors import ParseFailure
from codeintel.parsers import PythonParser


def _parse(source: str, path: str = "app/views.py"):  # type: ignore[no-untyped-def]
    return PythonParser().parse(textwrap.dedent(source).lstrip("\n"), path)


def test_imports_keep_relative_dots_and_aliases() -> None:
    analysis = _parse(
        """
        import numpy as np
        import os
        from .models import User, Order
        from .. import settings
        """
    )

    assert analysis.imports["numpy"] == ["numpy as np"]
    assert analysis.imports["os"] == ["os"]
    assert analysis.imports[".models"] == ["User", "Order"]
    assert analysis.imports[".."] == ["settings"]


def test_functions_and_classes_are_extracted() -> None:
    analysis = _parse(
        '''
        class UserView(APIView):
            """Users endpoint."""

            @method_decorator(login_required)
            def get(self, request, pk=None):
                return None


        async def fetch(url, *args, **kwargs):
            """Fetch a URL."""
            return url
        '''
    )

    view = analysis.classes["UserView"]
    assert view.line_number == 1
    assert view.docstring == "Users endpoint."
    assert view.base_classes == ["APIView"]
    method = view.methods["get(self, request, pk)"]
    assert method.decorators[0].name == "method_decorator"
    assert method.decorators[0].arguments == ["login_required"]

    fetch = analysis.functions["fetch(url, *args, **kwargs)"]
    assert fetch.is_async is True
    assert fetch.docstring == "Fetch a URL."
    assert fetch.line_number == 9


def test_route_hints_for_api_view_and_http_methods() -> None:
    analysis = _parse(
        """
        @api_view(["GET", "POST"])
        def user_list(request):
            return None


        class ItemView(View):
            def post(self, request):
                return None

            def helper(self):
                return None
        """
    )

    hints = analysis.functions["user_list(request)"].api_endpoints
    assert hints == [{"type": "django_api_view", "methods": ["GET", "POST"], "line": 2}]
    methods = analysis.classes["ItemView"].methods
    assert methods["post(self, request)"].api_endpoints == [
        {"type": "django_http_method", "method": "POST", "line": 7}
    ]
    assert methods["helper(self)"].api_endpoints == []


def test_orm_and_signal_tags_record_their_lines() -> None:
    analysis = _parse(
        """
        def register(form):
            user = User.objects.create(name=form.name)
            user.save()
            user_registered.send(sender=User)
            return user
        """
    )

    info = analysis.functions["register(form)"]
    assert info.state_changes == ["User.objects.create(", "user.save("]
    assert info.event_handlers == ["user_registered.send"]
    assert info.line_for("user.save(") == 3
    assert info.line_for("user_registered.send") == 4


def test_module_scope_collects_top_level_signal_wiring() -> None:
    analysis = _parse(
        """
        from django.db.models.signals import post_save

        def on_save(sender, **kwargs):
            pass

        post_save.connect(on_save, sender=User)
        """
    )

    assert analysis.module_scope is not None
    assert analysis.module_scope.event_handlers == ["post_save.connect"]
    assert analysis.module_scope.line_for("post_save.connect") == 6


def test_module_scope_absent_without_tags() -> None:
    assert _parse("x = 1\n").module_scope is None


def test_syntax_errors_raise_parse_failure() -> None:
    with pytest.raises(ParseFailure) as excinfo:
        PythonParser().parse("def broken(:\n", "broken.py")
    assert excinfo.value.tier == "python"
