from textwrap import dedent

PROMPT_TEMPLATE = dedent(
    '''
    You are a Python code generation engine.
    Your task is to {{ task }}.
    You must follow these rules strictly:
    {% for rule in rules %}
    {{ loop.index }}. {{ rule }}
    {% endfor %}
    {% if dependencies %}

    Here are the dependent type definitions:
    {% for dependency in dependencies %}
    ```python
    # module: {{ dependency.module }}
    {{ dependency.source }}
    ```
    {% endfor %}
    {% endif %}
    {% if external %}

    These names come from other libraries; import them from the listed modules:
    {% for module, names in external.items() %}
    - {{ module }}: {{ names | join(", ") }}
    {% endfor %}
    {% endif %}

    Here is the {{ declaration_label }} (import it with `from {{ module }} import {{ identifier }}`):
    ```python
    {{ source }}
    ```
    ''',
).strip()

FIX_PROMPT_TEMPLATE = dedent(
    '''
    You are a Python code generation engine.
    Your task is to fix the following {{ target }} implementation that has validation errors.
    You must follow these rules strictly:
    {% for rule in rules %}
    {{ loop.index }}. {{ rule }}
    {% endfor %}

    Validation errors:
    {% for error in errors %}
    - {{ error }}
    {% endfor %}
    {% if dependencies %}

    Here are the dependent type definitions:
    {% for dependency in dependencies %}
    ```python
    # module: {{ dependency.module }}
    {{ dependency.source }}
    ```
    {% endfor %}
    {% endif %}

    Here is the original {{ target }} you must {{ action }} (import it with `from {{ module }} import {{ identifier }}`):
    ```python
    {{ source }}
    ```

    Here is the current implementation with errors:
    ```python
    {{ current_code }}
    ```
    ''',
).strip()

STUB_MODULE_TEMPLATE = dedent(
    '''
    """Placeholder implementation of {{ identifier }}.

    The code-synthesis backend failed: {{ reason }}
    Regenerate with ``autoimpl generate --force``.
    """

    from __future__ import annotations

    from {{ module }} import {{ identifier }}


    class {{ impl_name }}({{ identifier }}):
    {% for method in methods %}
    {% for decorator in method.decorators %}
        @{{ decorator }}
    {% endfor %}
        {{ method.signature }}:
            raise NotImplementedError("{{ identifier }}.{{ method.name }} was not generated")
    {% if not loop.last %}

    {% endif %}
    {% else %}
        pass
    {% endfor %}
    ''',
).lstrip()

CONTAINER_MODULE_TEMPLATE = dedent(
    '''
    """Dependency-injection container for the generated implementations.

    Generated by autoimpl; edits are overwritten on the next run.
    """

    from __future__ import annotations

    from autoimpl.container import Registry
    {% if entries %}

    {% endif %}
    {% for entry in entries %}
    from .{{ entry.module_name }} import {{ entry.impl_name }}
    {% endfor %}


    class Container(Registry):
        """Builds one instance per service identifier on first access."""

        def __init__(self) -> None:
            super().__init__(
                {
    {% for entry in entries %}
                    "{{ entry.identifier }}": self.{{ entry.factory_name }},
    {% endfor %}
                },
            )
    {% for entry in entries %}

        def {{ entry.factory_name }}(self) -> {{ entry.impl_name }}:
            instance = {{ entry.impl_name }}({{ entry.arguments | join(", ") }})
    {% for prop in entry.properties %}
            instance.{{ prop.name }} = self.get("{{ prop.identifier }}")
    {% endfor %}
            return instance
    {% endfor %}


    container = Container()
    ''',
).lstrip()
