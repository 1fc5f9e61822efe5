"""BMad slash-command system: parser, loaders, resolver, sessions and matcher."""
