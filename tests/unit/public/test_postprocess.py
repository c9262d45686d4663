from __future__ import annotations

import ast
from collections.abc import Callable
from pathlib import Path

import pytest

from autoimpl import PostProcessError, ServiceContract
from autoimpl._internal.declarations import contract_from_declaration
from autoimpl.generation import PostProcessor, strip_code_fences
from autoimpl.inspection import AstProject

from support import USER_SERVICE_IMPL

MODULE_NAME = "generated.userservice_impl"


@pytest.fixture()
def project(user_service_project: Path) -> AstProject:
    return AstProject(user_service_project)


def _contract(project: AstProject, name: str) -> ServiceContract:
    (declaration,) = project.find_declarations(name)
    return contract_from_declaration(declaration, project.get_members(declaration))


class TestStripCodeFences:
    def test_prefers_block_defining_the_implementation(self) -> None:
        raw = "```python\nprint('example')\n```\ntext\n```\nclass DBImpl(DB):\n    pass\n```"

        assert strip_code_fences(raw, "DBImpl") == "class DBImpl(DB):\n    pass"

    def test_falls_back_to_longest_block(self) -> None:
        raw = "```\nx = 1\n```\n```py\nlonger = 2\nsecond = 3\n```"

        assert strip_code_fences(raw) == "longer = 2\nsecond = 3"

    def test_removes_reasoning_blocks(self) -> None:
        raw = "<think>```python\nclass DBImpl: ...\n```</think>\nclass DBImpl(DB):\n    pass"

        assert strip_code_fences(raw, "DBImpl") == "class DBImpl(DB):\n    pass"

    def test_unterminated_fence(self) -> None:
        raw = "```python\nclass DBImpl(DB):\n    pass"

        assert strip_code_fences(raw, "DBImpl") == "class DBImpl(DB):\n    pass"

    def test_plain_code_is_returned_stripped(self) -> None:
        assert strip_code_fences("\n  x = 1  \n") == "x = 1"


class TestProcess:
    def test_rewrites_imports_and_drops_redeclared_attributes(self, project: AstProject) -> None:
        contract = _contract(project, "UserService")

        code = PostProcessor(project).process(USER_SERVICE_IMPL, contract, module_name=MODULE_NAME)

        assert code.startswith(
            "from app.user import User\nfrom app.user_service import UserService\n\n\n",
        )
        assert "from user_service import" not in code
        assert "db = None" not in code
        assert "Here is the implementation" not in code
        assert PostProcessor(project).validate(code, contract) == []

    def test_removes_redeclared_contract_class(self, project: AstProject) -> None:
        contract = _contract(project, "DB")
        raw = (
            "from abc import ABC\n\n\n"
            "class DB(ABC):\n    pass\n\n\n"
            "class DBImpl(DB):\n"
            "    def save(self, user: User) -> None:\n        pass\n\n"
            "    def find(self, name: str) -> User | None:\n        return None\n"
        )

        code = PostProcessor(project).process(raw, contract, module_name="generated.db_impl")

        tree = ast.parse(code)
        classes = [node.name for node in tree.body if isinstance(node, ast.ClassDef)]
        assert classes == ["DBImpl"]
        assert "from app.db import DB" in code
        assert "from app.user import User" in code

    def test_relative_imports_are_made_absolute(self, project: AstProject) -> None:
        contract = _contract(project, "DB")
        raw = (
            "from ..app.db import DB\n"
            "from ..app.user import User\n\n\n"
            "class DBImpl(DB):\n"
            "    def save(self, user: User) -> None: ...\n\n"
            "    def find(self, name: str) -> User | None: ...\n"
        )

        code = PostProcessor(project).process(raw, contract, module_name="generated.db_impl")

        assert "from app.db import DB\nfrom app.user import User\n" in code
        assert "from .." not in code

    def test_imports_are_grouped_into_sections(self, project: AstProject) -> None:
        contract = _contract(project, "DB")
        raw = (
            '"""DB implementation."""\n'
            "from __future__ import annotations\n"
            "import httpx\n"
            "from app.db import DB\n"
            "import re\n\n\n"
            "class DBImpl(DB):\n"
            "    pattern = re.compile('x')\n"
            "    client = httpx.AsyncClient\n\n"
            "    def save(self, user) -> None: ...\n\n"
            "    def find(self, name) -> None: ...\n"
        )

        code = PostProcessor(project).process(raw, contract, module_name="generated.db_impl")

        assert code.startswith(
            '"""DB implementation."""\n'
            "from __future__ import annotations\n\n"
            "import re\n\n"
            "import httpx\n\n"
            "from app.db import DB\n",
        )

    def test_redeclared_attribute_only_body_gets_pass(self, project: AstProject) -> None:
        contract = _contract(project, "UserService")
        raw = "class UserServiceImpl(UserService):\n    db = None\n"

        code = PostProcessor(project).process(raw, contract, module_name=MODULE_NAME)

        assert "class UserServiceImpl(UserService):\n    pass\n" in code

    @pytest.mark.parametrize(
        ("raw", "message"),
        [
            ("", "empty response"),
            ("class UserServiceImpl(UserService:\n", "syntax error"),
            ("class Other(UserService):\n    pass\n", "'UserServiceImpl' is missing"),
        ],
    )
    def test_unusable_output_raises(self, project: AstProject, raw: str, message: str) -> None:
        contract = _contract(project, "UserService")

        with pytest.raises(PostProcessError, match=message) as error:
            PostProcessor(project).process(raw, contract, module_name=MODULE_NAME)

        assert error.value.identifier == "UserService"
        assert error.value.errors


class TestValidate:
    def test_reports_missing_abstract_methods_and_base(self, project: AstProject) -> None:
        contract = _contract(project, "UserService")
        code = "class UserServiceImpl:\n    def create(self, user) -> None: ...\n"

        errors = PostProcessor(project).validate(code, contract)

        assert errors == [
            "class 'UserServiceImpl' must subclass 'UserService'",
            "abstract method 'find_by_name' is not implemented",
        ]

    def test_reports_syntax_errors(self, project: AstProject) -> None:
        contract = _contract(project, "UserService")

        (error,) = PostProcessor(project).validate("def broken(:\n", contract)

        assert error.startswith("syntax error at line 1")


def test_long_import_lines_are_wrapped(project: AstProject) -> None:
    processor = PostProcessor(project)
    contract = _contract(project, "DB")
    names = ", ".join(f"name_{index:02d}" for index in range(12))
    raw = (
        f"from typing import {names}\nfrom app.db import DB\n\n\n"
        "class DBImpl(DB):\n"
        "    def save(self, user) -> None: ...\n\n"
        "    def find(self, name) -> None: ...\n"
    )

    code = processor.process(raw, contract, module_name="generated.db_impl")

    assert "from typing import (\n    name_00,\n" in code


def test_interface_drops_only_marked_redeclared_attributes(
    write_project: Callable[[dict[str, str]], Path],
) -> None:
    project = AstProject(
        write_project(
            {
                "ports.py": """
                    from typing import Protocol

                    from autoimpl import AutoGen


                    class Clock(Protocol):
                        def now(self) -> float: ...


                    class Scheduler(Protocol):
                        clock: AutoGen[Clock]
                        name: str

                        def run(self) -> None: ...
                """,
            },
        ),
    )
    contract = _contract(project, "Scheduler")
    raw = (
        "from ports import Clock, Scheduler\n\n\n"
        "class SchedulerImpl(Scheduler):\n"
        "    clock: Clock\n"
        '    name: str = "default"\n\n'
        "    def run(self) -> None:\n"
        "        self.clock.now()\n"
    )

    code = PostProcessor(project).process(raw, contract, module_name="generated.scheduler_impl")

    assert "    clock: Clock\n" not in code
    assert '    name: str = "default"\n' in code
