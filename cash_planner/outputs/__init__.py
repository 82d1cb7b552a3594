# cash_planner/outputs/__init__.py
from importlib import import_module

from cash_planner.errors import ValidationError


def get_output(name, config):
    modules = config.get('output_modules', {})
    if name not in modules:
        raise ValidationError(f"Unknown output module: {name}")
    module_name, cls_name = modules[name].rsplit('.', 1)
    mod = import_module(module_name)
    return getattr(mod, cls_name)(config)
