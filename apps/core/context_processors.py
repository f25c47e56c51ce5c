# core/context_processors.py


def library_context(request):
    """
    Adds the acting profile and library to all templates.
    """
    profile = getattr(request, 'profile', None)
    library = getattr(request, 'library', None)

    context = {
        'active_library': library,
        'user_profile': profile,
        'user_role': profile.role if profile else None,
    }
    if library is not None:
        context['currency_symbol'] = library.currency_symbol
    return context
