from .qibla_component import QiblaComponent


def register_components(plugin_manager):
    """Register Qibla component."""
    plugin_manager.register_component(QiblaComponent)
